import sys

from soundwrapped_report.__main__ import bootstrap_credential
from soundwrapped_report.config import settings
from soundwrapped_report.db import db
from soundwrapped_report.report import ReportAssembler
from soundwrapped_report.services.api_client import ResilientApiClient
from soundwrapped_report.services.soundcloud import SoundCloudAPI
from soundwrapped_report.services.storage import ActivityStore
from soundwrapped_report.services.tokens import SqlCredentialStore, TokenLifecycleManager

# Initialize database
db.init(sys.argv[1] if len(sys.argv) > 1 else None)

# Create report assembler
tokens = TokenLifecycleManager(
    SqlCredentialStore(db),
    client_id=settings.SOUNDCLOUD_CLIENT_ID,
    client_secret=settings.SOUNDCLOUD_CLIENT_SECRET,
    token_url=settings.SOUNDCLOUD_TOKEN_URL,
    redirect_uri=settings.SOUNDCLOUD_REDIRECT_URI
)
bootstrap_credential(tokens, settings)
api = SoundCloudAPI(ResilientApiClient(tokens, base_url=settings.SOUNDCLOUD_API_URL))
assembler = ReportAssembler(api, ActivityStore(db.get_session()), settings)

# Generate report
report = assembler.generate()

# Print results
print(report.model_dump_json(by_alias=True, indent=2))
