"""Entry point for report generation"""
import contextlib
import json
import logging
import os
import sys

from soundwrapped_report.config import Settings, settings, SECRET_FIELDS
from soundwrapped_report.db import db
from soundwrapped_report.exceptions import AuthenticationRequired
from soundwrapped_report.report import ReportAssembler
from soundwrapped_report.scheduler import TokenRefreshScheduler
from soundwrapped_report.services.api_client import ResilientApiClient
from soundwrapped_report.services.soundcloud import SoundCloudAPI
from soundwrapped_report.services.storage import ActivityStore
from soundwrapped_report.services.tokens import SqlCredentialStore, TokenLifecycleManager
from soundwrapped_report.utils.json_encoder import json_dumps

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def bootstrap_credential(tokens: TokenLifecycleManager, config: Settings = settings) -> None:
    """Seed the credential store from the environment when it is still empty"""
    if tokens.get_credential() is not None:
        return
    if config.SOUNDCLOUD_AUTH_CODE:
        tokens.exchange_authorization_code(config.SOUNDCLOUD_AUTH_CODE)
    elif config.SOUNDCLOUD_ACCESS_TOKEN:
        tokens.save_credential(config.SOUNDCLOUD_ACCESS_TOKEN, config.SOUNDCLOUD_REFRESH_TOKEN)
    else:
        logger.warning("No stored credential and none configured; the report needs authentication")


def run() -> None:
    """Generate the year-in-review report and write it to OUTPUT_DIR"""
    session = None
    try:
        # Initialize database connection
        db.init(settings.DATABASE_URL)

        # Log config (excluding sensitive data)
        logger.info("Using configuration:")
        safe_config = settings.model_dump(exclude=SECRET_FIELDS)
        logger.info(json_dumps(safe_config, indent=2))

        tokens = TokenLifecycleManager(
            SqlCredentialStore(db),
            client_id=settings.SOUNDCLOUD_CLIENT_ID,
            client_secret=settings.SOUNDCLOUD_CLIENT_SECRET,
            token_url=settings.SOUNDCLOUD_TOKEN_URL,
            redirect_uri=settings.SOUNDCLOUD_REDIRECT_URI,
            refresh_margin_seconds=settings.TOKEN_REFRESH_MARGIN_SECONDS,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            user_agent=settings.USER_AGENT
        )
        bootstrap_credential(tokens, settings)

        client = ResilientApiClient(
            tokens,
            base_url=settings.SOUNDCLOUD_API_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            max_pages=settings.MAX_PAGES,
            page_size=settings.PAGE_SIZE,
            user_agent=settings.USER_AGENT
        )
        session = db.get_session()
        assembler = ReportAssembler(SoundCloudAPI(client), ActivityStore(session), settings)

        scheduler = (
            TokenRefreshScheduler(tokens, interval_seconds=settings.TOKEN_REFRESH_INTERVAL_SECONDS)
            if settings.TOKEN_REFRESH_ENABLED else contextlib.nullcontext()
        )
        with scheduler:
            report = assembler.generate()

        # Save results
        os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
        output_path = os.path.join(settings.OUTPUT_DIR, "report.json")
        with open(output_path, 'w') as f:
            json.dump(report.model_dump(by_alias=True, mode='json'), f, indent=2)

        logger.info(f"Report written to {output_path} ({len(report.notes)} notes)")

    except AuthenticationRequired as e:
        logger.error(f"Authentication required: {e}")
        sys.exit(1)
    finally:
        if session is not None:
            session.close()
        db.dispose()


if __name__ == "__main__":
    run()
