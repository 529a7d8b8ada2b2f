"""Shared TLS configuration for drivers that talk to TLS-capable backends.

Drivers expose the same five settings (enable, insecure, CA file, cert file,
key file) and turn them into whatever their client library expects: an
``ssl.SSLContext`` for socket-level clients, or ``verify``/``cert`` keyword
arguments for ``requests``.
"""

import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .exceptions import ConfigurationError
from .logging_config import logger


@dataclass
class TLSOptions:
    """
    TLS settings shared by drivers.

    Attributes:
        enabled: Whether TLS is used at all
        insecure: Skip certificate and hostname verification
        ca_file: PEM bundle of trusted CAs
        cert_file: Client certificate (PEM)
        key_file: Client private key (PEM); may be omitted if cert_file holds both
    """

    enabled: bool = False
    insecure: bool = False
    ca_file: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None


def _check_file(path: str, label: str) -> None:
    if not Path(path).is_file():
        raise ConfigurationError(f"TLS {label} file not found: {path}")


def build_ssl_context(options: TLSOptions) -> Optional[ssl.SSLContext]:
    """
    Build an SSL context from TLS options.

    Args:
        options: TLS settings

    Returns:
        Configured SSLContext, or None when TLS is disabled

    Raises:
        ConfigurationError: If a CA, certificate or key file cannot be loaded
    """
    if not options.enabled:
        return None

    logger.debug("Creating TLS context")
    context = ssl.create_default_context()

    if options.insecure:
        logger.debug("TLS verification disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if options.ca_file:
        _check_file(options.ca_file, "CA")
        try:
            context.load_verify_locations(cafile=options.ca_file)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(f"Failed to load TLS CA file {options.ca_file}: {e}")

    if options.cert_file:
        _check_file(options.cert_file, "certificate")
        if options.key_file:
            _check_file(options.key_file, "key")
        try:
            context.load_cert_chain(certfile=options.cert_file, keyfile=options.key_file or None)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(f"Failed to load TLS certificate {options.cert_file}: {e}")

    return context


def requests_tls_kwargs(options: TLSOptions) -> Dict[str, Any]:
    """
    Translate TLS options into ``verify``/``cert`` arguments for requests.

    The files are loaded once through build_ssl_context so that unreadable
    or malformed files fail here with a ConfigurationError rather than on
    the first request.

    Returns:
        Dict suitable for ``requests.Session.request(**kwargs)``
    """
    if not options.enabled:
        return {}

    build_ssl_context(options)

    verify: Union[bool, str] = True
    if options.insecure:
        verify = False
    elif options.ca_file:
        verify = options.ca_file

    kwargs: Dict[str, Any] = {"verify": verify}
    if options.cert_file:
        cert: Union[str, Tuple[str, str]] = options.cert_file
        if options.key_file:
            cert = (options.cert_file, options.key_file)
        kwargs["cert"] = cert
    return kwargs
