"""
Run the LMS API with uvicorn.

    python -m lmsdb.serve

HOST, PORT, RELOAD, LOG_LEVEL and FORWARDED_ALLOW_IPS tune the server;
SSL_CERTFILE / SSL_KEYFILE (plus optional SSL_CA_CERTS and
SSL_KEYFILE_PASSWORD) switch it to HTTPS.
"""

import os
from typing import Dict

import uvicorn

_SSL_ENV = {
    "ssl_certfile": "SSL_CERTFILE",
    "ssl_keyfile": "SSL_KEYFILE",
    "ssl_ca_certs": "SSL_CA_CERTS",
    "ssl_keyfile_password": "SSL_KEYFILE_PASSWORD",
}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _ssl_options() -> Dict[str, str]:
    return {option: os.environ[var] for option, var in _SSL_ENV.items() if os.getenv(var)}


def main() -> None:
    uvicorn.run(
        "lmsdb.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=_env_flag("RELOAD"),
        log_level=os.getenv("LOG_LEVEL", "info"),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
