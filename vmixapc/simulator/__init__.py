"""Emulators for running the bridge without vMix or an APC mini."""
