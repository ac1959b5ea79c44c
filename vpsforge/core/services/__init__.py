"""
Services — doctor, updater, checksum gate and host guard checks.
"""
