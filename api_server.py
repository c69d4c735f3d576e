import os
import sys
import uvicorn
import logging
import fcntl
from pathlib import Path
from dotenv import load_dotenv

# Configure logging to write to both stderr and a file immediately.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr),
        logging.FileHandler("api_server.log", mode="a")
    ]
)
logger = logging.getLogger("api_server")

def _load_local_env() -> None:
    """
    Load local environment variables from config/secrets.env (if present).

    Typical entries: ORDERBRIDGE_RPC_ENDPOINT (often carries an API key) and
    ORDERBRIDGE_ADMIN_KEYPAIR.
    """
    env_path = Path(__file__).resolve().parent / "config" / "secrets.env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment variables from %s", env_path)

def main() -> None:
    _load_local_env()

    # Only one process may sign with the admin keypair at a time; per-trade
    # serialisation is in-process.
    lock_path = Path(".api_server.lock")
    try:
        lock_f = lock_path.open("w")
        fcntl.flock(lock_f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        lock_f.write(str(os.getpid()))
        lock_f.flush()
        # Keep lock file handle alive for process lifetime.
    except OSError:
        logger.error("Another API instance appears to be running (lockfile busy). Exiting.")
        sys.exit(1)

    from src.utils.config_loader import load_config

    try:
        api_cfg = load_config().get("api") or {}
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot start without a valid config: {e}")
        sys.exit(1)

    host = str(api_cfg.get("host", "127.0.0.1"))
    port = int(api_cfg.get("port", 3001))

    try:
        logger.info(f"Starting Order Bridge API server on {host}:{port}")

        uvicorn.run(
            "src.api.app:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            loop="auto",
            workers=1  # Single worker: the admin signer and trade locks are per-process
        )
    except Exception as e:
        logger.error(f"Fatal error in API server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
