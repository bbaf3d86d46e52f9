"""
Shakespeare Settings
====================
Runtime configuration shared by the CLI and the HTTP service.
Values come from ``SHAKESPEARE_*`` environment variables; CLI flags
override them.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .lexicon import Lexicon, default_lexicon

ENV_PREFIX = "SHAKESPEARE_"


@dataclass
class Settings:
    """Configuration for a toolchain session.

    Only populate what differs from the defaults.
    """

    wordlist_dir: Optional[str] = None   # custom *.wordlist directory (None = bundled)
    max_steps: Optional[int] = None      # node budget per run (None = unlimited)
    log_level: str = "WARNING"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        max_steps = get("MAX_STEPS")
        port = get("PORT")
        return cls(
            wordlist_dir=get("WORDLIST_DIR"),
            max_steps=int(max_steps) if max_steps else None,
            log_level=(get("LOG_LEVEL") or cls.log_level).upper(),
            host=get("HOST") or cls.host,
            port=int(port) if port else cls.port,
        )

    def lexicon(self) -> Lexicon:
        return default_lexicon(self.wordlist_dir)

    def configure_logging(self):
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.WARNING),
            format="%(levelname)s %(name)s: %(message)s",
        )
