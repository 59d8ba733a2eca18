"""ONVIF transport: PTZ preset recall over SOAP with a WS-Security digest."""

import base64
import hashlib
import os
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional
from xml.sax.saxutils import escape

import requests

from .base import CameraController

ONVIF_TIMEOUT = 3.0
SERVICE_PATH = "/onvif/device_service"

SOAP_NS = "http://www.w3.org/2003/05/soap-envelope"
PTZ_NS = "http://www.onvif.org/ver20/ptz/wsdl"
MEDIA_NS = "http://www.onvif.org/ver10/media/wsdl"
WSSE_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
WSU_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
PASSWORD_DIGEST = ("http://docs.oasis-open.org/wss/2004/01/"
                   "oasis-200401-wss-username-token-profile-1.0#PasswordDigest")
BASE64_BINARY = ("http://docs.oasis-open.org/wss/2004/01/"
                 "oasis-200401-wss-soap-message-security-1.0#Base64Binary")


def password_digest(nonce: bytes, created: str, password: str) -> str:
    """Base64(SHA1(nonce + created + password)) as required by UsernameToken."""
    digest = hashlib.sha1(nonce + created.encode("utf-8") + password.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def security_header(user: str, password: str, nonce: Optional[bytes] = None,
                    created: Optional[str] = None) -> str:
    if not user:
        return ""
    nonce = nonce if nonce is not None else os.urandom(16)
    created = created or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return (
        f'<Security s:mustUnderstand="1" xmlns="{WSSE_NS}">'
        f'<UsernameToken>'
        f'<Username>{escape(user)}</Username>'
        f'<Password Type="{PASSWORD_DIGEST}">{password_digest(nonce, created, password)}</Password>'
        f'<Nonce EncodingType="{BASE64_BINARY}">{base64.b64encode(nonce).decode("ascii")}</Nonce>'
        f'<Created xmlns="{WSU_NS}">{created}</Created>'
        f'</UsernameToken>'
        f'</Security>'
    )


def envelope(body: str, header: str = "") -> str:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<s:Envelope xmlns:s="{SOAP_NS}">'
        f'<s:Header>{header}</s:Header>'
        f'<s:Body>{body}</s:Body>'
        f'</s:Envelope>'
    )


def goto_preset_body(profile: str, preset: str) -> str:
    if preset.lower() == "home":
        return (f'<GotoHomePosition xmlns="{PTZ_NS}">'
                f'<ProfileToken>{escape(profile)}</ProfileToken>'
                f'</GotoHomePosition>')
    return (f'<GotoPreset xmlns="{PTZ_NS}">'
            f'<ProfileToken>{escape(profile)}</ProfileToken>'
            f'<PresetToken>{escape(preset)}</PresetToken>'
            f'</GotoPreset>')


def first_profile_token(response_xml: str) -> Optional[str]:
    """Token of the first media profile in a GetProfiles response."""
    try:
        root = ET.fromstring(response_xml)
    except ET.ParseError:
        return None
    profile = root.find(f".//{{{MEDIA_NS}}}Profiles")
    if profile is None:
        return None
    return profile.get("token")


class OnvifCamera(CameraController):
    """
    PTZ preset recall through the camera's ONVIF service.

    The media profile token is taken from the descriptor, or fetched once
    with GetProfiles on first use.
    """

    def __init__(self, descriptor, session: requests.Session = None):
        super().__init__(descriptor)
        self.session = session or requests.Session()
        self.url = f"http://{descriptor.address}{SERVICE_PATH}"
        self.profile = descriptor.profile

    def _post(self, body: str) -> requests.Response:
        header = security_header(self.descriptor.user, self.descriptor.password)
        response = self.session.post(
            self.url,
            data=envelope(body, header).encode("utf-8"),
            headers={"Content-Type": "application/soap+xml; charset=utf-8"},
            timeout=ONVIF_TIMEOUT,
        )
        response.raise_for_status()
        return response

    def _profile_token(self) -> Optional[str]:
        if not self.profile:
            response = self._post(f'<GetProfiles xmlns="{MEDIA_NS}"/>')
            self.profile = first_profile_token(response.text) or ""
            if self.profile:
                self.logger.info(f"Camera '{self.name}' using profile {self.profile}")
        return self.profile or None

    def move_to_preset(self, preset: str) -> bool:
        try:
            profile = self._profile_token()
            if profile is None:
                self.logger.warning(f"Camera '{self.name}' reported no media profile")
                return False
            self._post(goto_preset_body(profile, preset))
        except requests.RequestException as e:
            self.logger.warning(f"Camera '{self.name}' preset {preset} failed: {e}")
            return False

        self.logger.debug(f"Camera '{self.name}' moved to preset {preset}")
        return True

    def close(self) -> None:
        self.session.close()
