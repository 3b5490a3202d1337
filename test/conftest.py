import base64
import os
from io import BytesIO

from dotenv import find_dotenv, load_dotenv

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["APP_BASE_URL"] = "https://app.signfast.test"
os.environ.setdefault("LOG_LEVEL", "WARNING")
load_dotenv(find_dotenv(f".env{os.getenv('ENV', '')}"))

import pytest
import pytest_asyncio
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from signfast.billing import models as billing_models  # noqa: F401
from signfast.billing.exceptions import BillingProviderException, WebhookSignatureException
from signfast.billing.repository import BillingRepository
from signfast.billing.services import UsageMeterService
from signfast.core.db import Base
from signfast.documents.repository import DocumentRepository
from signfast.documents.services import DocumentService
from signfast.regions import models as region_models  # noqa: F401
from signfast.regions.schemas import RegionCreate
from signfast.regions.utils import select_applicable
from signfast.signing import models as signing_models  # noqa: F401
from signfast.signing.repository import SignatureRepository
from signfast.signing.schemas import SignerInput
from signfast.signing.services import SigningWorkflowService
from signfast.users.models import User
from signfast.users.repository import UserRepository
from signfast.utils.logger import get_logger

logger = get_logger(__name__)


# --- Generated test files ---

def make_pdf(pages: int = 2) -> bytes:
    """A small letter-size PDF with one line of text per page."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for number in range(1, pages + 1):
        c.drawString(72, 720, f"Test page {number}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_png(width: int = 200, height: int = 80) -> str:
    """A base64 PNG signature with a data URL header."""
    image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    for x in range(10, width - 10):
        image.putpixel((x, height // 2), (0, 0, 0, 255))
    buf = BytesIO()
    image.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def signature_png():
    return make_png()


# --- Collaborator fakes ---

class FakeObjectStore:
    """Dict-backed stand-in for S3Utils."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_upload_prefixes = []

    def upload_file(self, file_obj, key, content_type=None):
        if any(key.startswith(prefix) for prefix in self.fail_upload_prefixes):
            return False
        data = file_obj if isinstance(file_obj, (bytes, bytearray)) else file_obj.read()
        self.objects[key] = bytes(data)
        return True

    def download_file(self, key):
        return self.objects.get(key)

    def generate_presigned_url(self, key, expiration=None):
        if key not in self.objects:
            return None
        return f"https://files.signfast.test/{key}"

    def delete_file(self, key):
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None


class FakeNotifier:
    """Records emails instead of sending them. Addresses in fail_for raise."""

    def __init__(self):
        self.signing_requests = []
        self.completions = []
        self.fail_for = set()

    async def send_signing_request(
        self, *, to_email, signer_name, document_title, sender_name, signing_url
    ):
        if to_email in self.fail_for:
            raise RuntimeError(f"SES rejected {to_email}")
        self.signing_requests.append({
            "to_email": to_email,
            "signer_name": signer_name,
            "document_title": document_title,
            "sender_name": sender_name,
            "signing_url": signing_url,
        })

    async def send_document_completed(
        self, *, to_email, recipient_name, document_title, download_url=None, attachment=None
    ):
        if to_email in self.fail_for:
            raise RuntimeError(f"SES rejected {to_email}")
        self.completions.append({
            "to_email": to_email,
            "recipient_name": recipient_name,
            "document_title": document_title,
            "download_url": download_url,
            "attachment": attachment,
        })


class FakeStripeClient:
    def __init__(self):
        self.usage_reports = []
        self.fail_usage = False
        self.customers = []
        self.checkouts = []

    async def create_customer(self, email, name, user_id):
        self.customers.append(email)
        return f"cus_{user_id}"

    async def create_checkout_session(self, customer_id, price_id, user_id, plan_type):
        self.checkouts.append((customer_id, price_id, plan_type))
        return {"session_id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    async def create_portal_session(self, customer_id):
        return f"https://billing.stripe.test/{customer_id}"

    async def report_usage(self, customer_id, identifier, quantity=1):
        if self.fail_usage:
            raise BillingProviderException("usage reporting", "stripe unavailable")
        self.usage_reports.append((customer_id, identifier, quantity))
        return identifier

    def verify_webhook(self, payload, signature_header):
        if signature_header != "valid-signature":
            raise WebhookSignatureException("signature mismatch")


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def stripe_client():
    return FakeStripeClient()


# --- Database ---

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def create_user(db_session, email, **fields) -> User:
    user = User(
        first_name=fields.pop("first_name", email.split("@")[0].title()),
        last_name=fields.pop("last_name", "Tester"),
        email_address=email,
        **fields,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def owner(db_session):
    return await create_user(db_session, "owner@example.com", free_signatures_remaining=5)


@pytest_asyncio.fixture
async def other_user(db_session):
    return await create_user(db_session, "someone.else@example.com")


# --- Services wired to the fakes ---

@pytest.fixture
def meter(db_session, stripe_client):
    return UsageMeterService(
        repo=BillingRepository(db_session),
        users=UserRepository(db_session),
        stripe_client=stripe_client,
    )


@pytest.fixture
def document_service(db_session, store):
    return DocumentService(repo=DocumentRepository(db_session), storage=store)


@pytest.fixture
def workflow(db_session, store, notifier, meter):
    return SigningWorkflowService(
        repo=SignatureRepository(db_session),
        documents=DocumentRepository(db_session),
        storage=store,
        notifier=notifier,
        meter=meter,
    )


def layout_for(number_of_signers: int):
    """One signature box per signer on page 1, a shared name box on page 2."""
    regions = [
        RegionCreate(
            type="signature", x=72, y=600 - 90 * index, width=200, height=60,
            page_number=1, signer_index=index,
        )
        for index in range(number_of_signers)
    ]
    regions.append(RegionCreate(type="name", x=72, y=100, width=200, height=30, page_number=2))
    return regions


@pytest.fixture
def prepare_document(document_service, owner, pdf_bytes):
    """Upload a PDF and lay out regions for the given number of signers."""

    async def _prepare(number_of_signers: int = 1, owner_id: int = None):
        owner_id = owner_id or owner.id
        document = await document_service.upload_document(
            owner_id=owner_id, filename="contract.pdf", data=pdf_bytes, title="Contract"
        )
        return await document_service.configure_regions(
            document.id, owner_id, layout_for(number_of_signers), number_of_signers
        )

    return _prepare


def signers(count: int):
    return [
        SignerInput(email=f"signer{index}@example.com", name=f"Signer {index}")
        for index in range(count)
    ]


def values_for(document, signer_index: int, png: str):
    """area_data covering every region the signer is responsible for."""
    data = {}
    for region in select_applicable(document.regions, signer_index):
        if region.type == "signature":
            data[str(region.id)] = {"type": "signature", "data": png}
        else:
            data[str(region.id)] = f"Signer {signer_index}"
    return data


def token_from(url: str) -> str:
    return url.rsplit("/", 1)[-1]
