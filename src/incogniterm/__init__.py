"""incogniterm: a disposable fake-identity terminal for demos and recordings."""

__version__ = "0.1.0"
