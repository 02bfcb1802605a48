import pytest
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from vault_api.core.errors import (
    AppError,
    AuthenticationError,
    CsrfError,
    DatabaseError,
    ErrorCode,
    ExternalServiceError,
    InternalServerError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    map_store_error,
    with_retry,
)
from vault_api.schemas.auth import AuthInviteSignupRequest, AuthMagicLinkRequest, AuthSignupRequest
from vault_api.schemas.item import ItemCreateRequest
from vault_api.services.file_security import (
    generate_secure_filename,
    sanitize_filename,
    scan_for_threats,
    validate_file_content,
)
from vault_api.services.html import extract_metadata, sanitize_html
from vault_api.services.local_auth import csrf_tokens_match, hash_password, verify_password
from vault_api.services.uploads import validate_upload
from vault_api.services.validation import (
    password_problems,
    sanitize_string,
    sanitize_tags,
    split_tags,
)

JPEG_BYTES = bytes.fromhex("FFD8FFE000104A464946") + b"\x00" * 32
PNG_BYTES = bytes.fromhex("89504E470D0A1A0A") + b"\x00" * 32


def test_error_taxonomy_status_codes():
    cases = [
        (ValidationError("bad"), ErrorCode.VALIDATION_ERROR, 400),
        (AuthenticationError(), ErrorCode.AUTHENTICATION_ERROR, 401),
        (CsrfError(), ErrorCode.AUTHENTICATION_ERROR, 403),
        (NotFoundError("Item"), ErrorCode.NOT_FOUND_ERROR, 404),
        (RateLimitError(retry_after=12), ErrorCode.RATE_LIMIT_ERROR, 429),
        (DatabaseError(), ErrorCode.DATABASE_ERROR, 500),
        (ExternalServiceError("storage"), ErrorCode.EXTERNAL_SERVICE_ERROR, 502),
        (InternalServerError(), ErrorCode.INTERNAL_SERVER_ERROR, 500),
    ]
    for exc, code, status_code in cases:
        assert exc.code == code
        assert exc.status_code == status_code

    assert NotFoundError("Item").message == "Item not found"
    assert RateLimitError(retry_after=12).headers["Retry-After"] == "12"
    assert RateLimitError(retry_after=0).retry_after == 1
    assert InternalServerError().is_operational is False
    assert ValidationError("bad").is_operational is True


def test_map_store_error_classifies_persistence_failures():
    unique = IntegrityError("insert", {}, Exception("duplicate key value violates unique constraint"))
    assert isinstance(map_store_error(unique), ValidationError)
    assert map_store_error(unique).message == "Resource already exists"

    operational = OperationalError("select", {}, Exception("connection refused"))
    assert isinstance(map_store_error(operational), DatabaseError)

    assert isinstance(map_store_error(RuntimeError("row not found")), NotFoundError)
    assert isinstance(map_store_error(RuntimeError("boom")), InternalServerError)

    original = ValidationError("kept")
    assert map_store_error(original) is original


def test_with_retry_backs_off_and_gives_up():
    waits: list[float] = []
    attempts = {"count": 0}

    def flaky() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise ConnectionError("temporary")
        return "ok"

    assert with_retry(flaky, max_retries=3, delay_seconds=0.5, sleep=waits.append) == "ok"
    assert waits == [0.5, 1.0]

    def always_fails() -> None:
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        with_retry(always_fails, max_retries=2, delay_seconds=0.1, sleep=lambda _: None)


def test_with_retry_does_not_retry_operational_errors():
    calls = {"count": 0}

    def not_found() -> None:
        calls["count"] += 1
        raise NotFoundError("Item")

    with pytest.raises(NotFoundError):
        with_retry(not_found, max_retries=5, sleep=lambda _: None)
    assert calls["count"] == 1
    assert issubclass(NotFoundError, AppError)


def test_sanitize_tags_normalizes_and_dedupes():
    tags = sanitize_tags(["  Python ", "python", "", "X" * 80, *[f"t{i}" for i in range(30)]])
    assert tags[0] == "python"
    assert tags[1] == "x" * 50
    assert len(tags) == 20
    assert split_tags("a, B ,a,,c") == ["a", "b", "c"]
    assert split_tags(None) == []
    assert sanitize_string("  hello world  ", 5) == "hello"


def test_password_policy():
    assert password_problems("StrongPassw0rd!") == []
    problems = password_problems("weak")
    assert "Password must be at least 8 characters" in problems
    assert "Password must contain at least one uppercase letter" in problems
    assert "Password must contain at least one number" in problems
    assert "Password must contain at least one special character" in problems


def test_signup_schema_rules():
    valid = AuthSignupRequest(
        email="alice@example.com",
        password="StrongPassw0rd!",
        confirm_password="StrongPassw0rd!",
        display_name="  Mary-Jane O'Neil ",
    )
    assert valid.display_name == "Mary-Jane O'Neil"

    with pytest.raises(SchemaValidationError, match="Passwords don't match"):
        AuthSignupRequest(
            email="alice@example.com",
            password="StrongPassw0rd!",
            confirm_password="StrongPassw0rd?",
            display_name="Alice",
        )
    with pytest.raises(SchemaValidationError):
        AuthSignupRequest(
            email="alice@example.com",
            password="StrongPassw0rd!",
            confirm_password="StrongPassw0rd!",
            display_name="R2D2",
        )

    invite = AuthInviteSignupRequest(
        email="bob@example.com",
        password="StrongPassw0rd!",
        confirm_password="StrongPassw0rd!",
        display_name="Bob",
        invite_code=" ab12cd34 ",
    )
    assert invite.invite_code == "AB12CD34"

    with pytest.raises(SchemaValidationError, match="Email or phone is required"):
        AuthMagicLinkRequest()


def test_item_schema_cleans_fields():
    payload = ItemCreateRequest(
        title="  Reading list  ",
        content="  body  ",
        tags=["  AI ", "ai", "ML"],
        space_id="00000000-0000-0000-0000-000000000001",
    )
    assert payload.title == "Reading list"
    assert payload.content == "body"
    assert payload.tags == ["ai", "ml"]

    with pytest.raises(SchemaValidationError):
        ItemCreateRequest(title="   ", space_id="00000000-0000-0000-0000-000000000001")
    with pytest.raises(SchemaValidationError):
        ItemCreateRequest(
            title="Too long",
            content="x" * 100_001,
            space_id="00000000-0000-0000-0000-000000000001",
        )


def test_file_magic_bytes_and_threat_scan():
    assert validate_file_content(JPEG_BYTES, "image/jpeg")
    assert validate_file_content(PNG_BYTES, "image/png")
    assert not validate_file_content(PNG_BYTES, "image/jpeg")
    assert not validate_file_content(JPEG_BYTES, "application/x-msdownload")
    assert validate_file_content(b"plain text", "text/plain")
    assert not validate_file_content(b"MZ\x90\x00", "text/plain")
    assert not validate_file_content(bytes.fromhex("7F454C46") + b"rest", "text/plain")

    assert scan_for_threats(b"just some notes")
    assert not scan_for_threats(b"MZ\x90\x00 executable")
    assert not scan_for_threats(b"hello <SCRIPT>alert(1)</script>")


def test_validate_upload_order_of_checks():
    with pytest.raises(ValidationError, match="File too large. Maximum size for text/plain is 1MB."):
        validate_upload(b"a" * (1024 * 1024 + 1), "text/plain")
    with pytest.raises(ValidationError, match="File type not allowed"):
        validate_upload(b"data", "application/x-sh")
    with pytest.raises(ValidationError, match="No file provided"):
        validate_upload(b"", "text/plain")
    with pytest.raises(ValidationError, match="File content doesn't match declared type"):
        validate_upload(b"MZ\x90\x00", "image/jpeg")
    with pytest.raises(ValidationError, match="File content doesn't match declared type"):
        validate_upload(b"MZ\x90\x00 payload", "text/plain")
    with pytest.raises(ValidationError, match="File contains suspicious content"):
        validate_upload(b"notes <script>alert(1)</script>", "text/plain")
    validate_upload(JPEG_BYTES, "image/jpeg")


def test_secure_filenames():
    assert sanitize_filename("../../etc/passwd") == "_._etc_passwd"
    assert sanitize_filename("my report (final).pdf") == "my_report__final_.pdf"
    assert sanitize_filename("...") == "file"

    first = generate_secure_filename("photo.JPG", "user-1")
    second = generate_secure_filename("photo.JPG", "user-1")
    assert first != second
    assert first.endswith(".jpg")
    timestamp, rest = first.split("_", 1)
    assert timestamp.isdigit()
    assert len(rest.split(".")[0]) == 16
    assert generate_secure_filename("README", "user-1").endswith(".bin")


def test_sanitize_html_strips_active_content():
    html = (
        "<html><head><title>T</title><script>evil()</script></head><body>"
        "<p onclick=\"steal()\">Hello <strong>world</strong></p>"
        "<a href=\"javascript:alert(1)\" title=\"x\">link</a>"
        "<iframe src=\"https://evil.example\"></iframe>"
        "<section><em>kept</em></section><!-- note -->"
        "</body></html>"
    )
    cleaned = sanitize_html(html)
    assert "<script" not in cleaned
    assert "evil()" not in cleaned
    assert "onclick" not in cleaned
    assert "javascript:" not in cleaned
    assert "<iframe" not in cleaned
    assert "<section" not in cleaned
    assert "note" not in cleaned
    assert "<p>Hello <strong>world</strong></p>" in cleaned
    assert '<a title="x">link</a>' in cleaned
    assert "<em>kept</em>" in cleaned


def test_extract_metadata_prefers_open_graph():
    html = (
        "<html><head><title>Plain title</title>"
        '<meta property="og:title" content="OG title">'
        '<meta name="description" content="Short description">'
        "</head><body></body></html>"
    )
    meta = extract_metadata(html, "https://example.com/post")
    assert meta == {"title": "OG title", "excerpt": "Short description"}

    fallback = extract_metadata("<p>no head</p>", "https://docs.example.org/page")
    assert fallback == {"title": "docs.example.org", "excerpt": None}


def test_password_hash_and_csrf_compare():
    password_hash = hash_password("StrongPassw0rd!", iterations=1000)
    assert verify_password("StrongPassw0rd!", password_hash)
    assert not verify_password("wrong-password", password_hash)
    assert not verify_password("StrongPassw0rd!", "not-a-hash")

    assert csrf_tokens_match("abc", "abc")
    assert not csrf_tokens_match("abc", "abd")
    assert not csrf_tokens_match(None, "abc")
    assert not csrf_tokens_match("abc", "")
