"""Integration tests driving the bridge against the vMix emulator and the virtual surface."""
