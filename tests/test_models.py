"""Tests for request and message models."""

from __future__ import annotations

import pytest

from mailcraft.exceptions import MailValidationError
from mailcraft.models import (
    DispatchEnvelope,
    EncodedMessage,
    MailRequest,
    MessagePart,
    join_address_list,
)


class TestJoinAddressList:
    """Tests for address-list rendering."""

    @pytest.mark.parametrize("value", [None, "", []])
    def test_empty(self, value: object) -> None:
        """Unset lists render as an empty string."""
        assert join_address_list(value) == ""  # type: ignore[arg-type]

    def test_string_kept(self) -> None:
        """Strings are used verbatim."""
        assert join_address_list("a@x.com, b@y.com") == "a@x.com, b@y.com"

    def test_sequence_joined(self) -> None:
        """Sequences are comma-joined, skipping empty entries."""
        assert join_address_list(["a@x.com", "", "b@y.com"]) == "a@x.com, b@y.com"


class TestMailRequest:
    """Tests for MailRequest validation."""

    def test_minimal(self) -> None:
        """Only the four mandatory fields are required."""
        request = MailRequest(to="a@x.com", from_="b@y.com", subject="", body="")
        assert request.html is None
        assert request.wrap is False
        assert request.extra_headers == ()

    @pytest.mark.parametrize("field", ["to", "from_", "subject", "body"])
    def test_missing_mandatory(self, field: str) -> None:
        """A None mandatory field is a contract violation."""
        values = {"to": "a@x.com", "from_": "b@y.com", "subject": "s", "body": "b", field: None}
        with pytest.raises(MailValidationError, match=field):
            MailRequest(**values)  # type: ignore[arg-type]

    @pytest.mark.parametrize("field", ["to", "from_"])
    def test_blank_address(self, field: str) -> None:
        """Addresses cannot be blank."""
        values = {"to": "a@x.com", "from_": "b@y.com", "subject": "s", "body": "b", field: "  "}
        with pytest.raises(MailValidationError, match="non-empty"):
            MailRequest(**values)  # type: ignore[arg-type]

    def test_wrong_type(self) -> None:
        """Mandatory fields must be strings."""
        with pytest.raises(MailValidationError, match="must be a string"):
            MailRequest(to="a@x.com", from_="b@y.com", subject="s", body=b"bytes")  # type: ignore[arg-type]

    def test_validation_error_is_value_error(self) -> None:
        """Validation errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            MailRequest(to="", from_="b@y.com", subject="s", body="b")

    def test_extra_headers_normalized(self) -> None:
        """Header mappings become ordered name/value pairs."""
        request = MailRequest(
            to="a@x.com",
            from_="b@y.com",
            subject="s",
            body="b",
            headers={"X-One": "1", "X-Many": ["a", "b"]},
        )
        assert request.extra_headers == (("X-One", "1"), ("X-Many", "a"), ("X-Many", "b"))

    @pytest.mark.parametrize("name", ["Bad Name", "Colon:Name", ""])
    def test_invalid_header_name(self, name: str) -> None:
        """Header names must be printable ASCII without space or colon."""
        with pytest.raises(MailValidationError, match="Invalid header name"):
            MailRequest(to="a@x.com", from_="b@y.com", subject="s", body="b", headers={name: "v"})

    @pytest.mark.parametrize("value", ["a\r\nBcc: x@y.com", "a\nb", "a\rb"])
    def test_header_injection(self, value: str) -> None:
        """Header values cannot contain line breaks."""
        with pytest.raises(MailValidationError, match="line breaks"):
            MailRequest(to="a@x.com", from_="b@y.com", subject="s", body="b", headers={"X-Test": value})

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("to", "pat@example.org\nX-Injected: 1"),
            ("from_", "noreply@example.org\r\nBcc: spy@example.net"),
            ("cc", "a@example.org\rb@example.org"),
            ("bcc", ["hidden@example.org", "x@example.org\nX-Injected: 1"]),
        ],
    )
    def test_address_line_breaks_rejected(self, field: str, value: object) -> None:
        """Address fields cannot smuggle extra header lines."""
        values: dict[str, object] = {"to": "a@x.com", "from_": "b@y.com", "subject": "s", "body": "b", field: value}
        with pytest.raises(MailValidationError, match="line breaks"):
            MailRequest(**values)  # type: ignore[arg-type]

    def test_subject_line_breaks_accepted(self) -> None:
        """Subjects with line breaks are accepted; the builder unfolds them."""
        request = MailRequest(to="a@x.com", from_="b@y.com", subject="Hello\nWorld", body="b")
        assert request.subject == "Hello\nWorld"

    def test_address_list_properties(self) -> None:
        """Cc and Bcc are exposed as header values."""
        request = MailRequest(to="a@x.com", from_="b@y.com", subject="s", body="b", cc=["c@x.com"], bcc="d@x.com")
        assert request.cc_value == "c@x.com"
        assert request.bcc_value == "d@x.com"


class TestEncodedMessage:
    """Tests for EncodedMessage accessors."""

    def test_header_lookup(self) -> None:
        """Header lookups are case-insensitive and keep order."""
        part = MessagePart(content_type="text/plain", charset="us-ascii", data=b"x")
        message = EncodedMessage(
            headers=(("To", "a@x.com"), ("X-Tag", "1"), ("x-tag", "2")),
            parts=(part,),
            charset="us-ascii",
        )
        assert message.get("to") == "a@x.com"
        assert message.get("missing", "default") == "default"
        assert message.get_all("X-TAG") == ["1", "2"]

    def test_part_text(self) -> None:
        """Parts decode their data with their charset."""
        part = MessagePart(content_type="text/plain", charset="iso-8859-1", data=b"Ol\xe9")
        assert part.text == "Olé"


class TestDispatchEnvelope:
    """Tests for DispatchEnvelope."""

    def test_defaults(self) -> None:
        """The routing hint is optional."""
        envelope = DispatchEnvelope(env_from="", recipients=(), payload=b"")
        assert envelope.routing_hint is None

    def test_frozen(self) -> None:
        """Envelopes are immutable."""
        envelope = DispatchEnvelope(env_from="", recipients=(), payload=b"")
        with pytest.raises(AttributeError):
            envelope.env_from = "x"  # type: ignore[misc]
