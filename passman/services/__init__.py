from passman.services.clipboard import PyperclipBackend, SecureClipboard

__all__ = ["PyperclipBackend", "SecureClipboard"]
