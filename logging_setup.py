# ===============================================================
# logging_setup.py
# ===============================================================
import logging
import os
import sys
import re
import sentry_sdk

from config import ENVIRONMENT

# ------------------------------------------------
# Environment & log level
# ------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, LOG_LEVEL, logging.INFO)
SENTRY_DSN = os.getenv("SENTRY_DSN")  # optional, leave empty if not using

# ------------------------------------------------
# 🔒 Secret Filter to hide gateway keys / tokens
# ------------------------------------------------
class SecretFilter(logging.Filter):
    GATEWAY_KEY_PATTERN = re.compile(r"\b(?:sk|pk)_(?:live|test)_[A-Za-z0-9]+\b|\bFLW(?:SEC|PUB)K(?:_TEST)?-[A-Za-z0-9]+(?:-X)?")
    BEARER_PATTERN = re.compile(r"Bearer\s+[\w\-.=]+", re.IGNORECASE)
    KEY_PATTERN = re.compile(
        r"(?:secret|token|key|password)[^\s=:'\"]*['\"]?[:=]\s*['\"]?([\w-]+)['\"]?",
        re.IGNORECASE
    )

    def mask(self, text: str) -> str:
        text = self.GATEWAY_KEY_PATTERN.sub("[SECRET]", text)
        text = self.BEARER_PATTERN.sub("Bearer [SECRET]", text)
        return self.KEY_PATTERN.sub("[REDACTED]", text)

    def filter(self, record):
        record.msg = self.mask(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self.mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(self.mask(str(a)) for a in record.args)
        return True

# ------------------------------------------------
# Configure app logger
# ------------------------------------------------
formatter = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "%Y-%m-%d %H:%M:%S",
)
handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(formatter)
handler.addFilter(SecretFilter())

logger = logging.getLogger("EdifyPub")
logger.setLevel(numeric_level)
if not logger.handlers:
    logger.addHandler(handler)
logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Child logger that shares the masked stdout handler."""
    return logger.getChild(name)


# ------------------------------------------------
# Ensure uvicorn/gunicorn logs flow through this formatter
# ------------------------------------------------
for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access",
              "gunicorn", "gunicorn.error", "gunicorn.access"):
    logging.getLogger(noisy).handlers = [handler]
    logging.getLogger(noisy).propagate = False

# ------------------------------------------------
# Optional: Initialize Sentry
# ------------------------------------------------
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2")),
        environment=ENVIRONMENT,
    )


def capture_exception(exc: BaseException) -> None:
    """Forward to Sentry when a DSN is configured."""
    if SENTRY_DSN:
        sentry_sdk.capture_exception(exc)


logger.info("✅ Secure logger initialized (gateway keys masked from output).")
