"""Package metadata."""

__app_name__ = "mailcraft"
__version__ = "0.3.0"
__description__ = "Charset-negotiated MIME message building and templated mail formatting."

__all__ = ["__app_name__", "__description__", "__version__"]
