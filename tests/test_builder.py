"""Tests for MIME building and envelope extraction."""

from __future__ import annotations

import quopri
from email import message_from_bytes
from email.header import decode_header, make_header
from email.mime.text import MIMEText

import pytest

from mailcraft.builder import (
    build_message,
    envelope_from,
    make_envelope,
    parse_addresses,
    recipient_addresses,
    routing_hint,
    serialize_message,
    serialize_prebuilt,
    split_address,
    to_mime,
    wrap_body,
)
from mailcraft.exceptions import MailEncodingError, MalformedAddressError
from mailcraft.models import MailRequest, RoutingHint


def _request(**overrides: object) -> MailRequest:
    values: dict[str, object] = {
        "to": "pat@example.org",
        "from_": "noreply@example.org",
        "subject": "Welcome",
        "body": "Hello there",
    }
    values.update(overrides)
    return MailRequest(**values)  # type: ignore[arg-type]


class TestWrapBody:
    """Tests for body filling."""

    def test_long_line_filled(self) -> None:
        """Lines longer than the width are split on spaces."""
        wrapped = wrap_body("alpha beta gamma delta", width=11)
        assert wrapped == "alpha beta\ngamma delta"

    def test_short_lines_untouched(self) -> None:
        """Existing line breaks and blank lines survive."""
        body = "first\n\nsecond\n"
        assert wrap_body(body, width=20) == body

    def test_hyphenated_words_kept(self) -> None:
        """Words are never broken on hyphens."""
        wrapped = wrap_body("see well-known-thing now", width=16)
        assert "well-known-thing" in wrapped.split("\n")


class TestBuildMessageStructure:
    """Tests for part layout and charset labelling."""

    def test_plain_only(self) -> None:
        """Without html the message is a single text/plain part."""
        message = build_message(_request())
        assert message.is_multipart is False
        assert message.content_type == "text/plain"
        assert len(message.parts) == 1
        assert message.parts[0].transfer_encoding == "quoted-printable"
        assert message.parts[0].text == "Hello there"

    def test_alternative_parts(self) -> None:
        """With html the message is multipart/alternative, plain first."""
        message = build_message(_request(html="<p>Hello there</p>"))
        assert message.content_type == "multipart/alternative"
        assert [part.content_type for part in message.parts] == ["text/plain", "text/html"]
        assert all(part.charset == message.charset for part in message.parts)
        assert message.parts[0].text == "Hello there\n"
        assert message.parts[1].text == "<p>Hello there</p>"

    def test_ascii_charset(self) -> None:
        """ASCII content is labelled us-ascii even when a charset was requested."""
        message = build_message(_request(charset="iso-8859-1"))
        assert message.charset == "us-ascii"

    def test_latin1_parts(self) -> None:
        """Non-ASCII content is transcoded to the requested charset."""
        message = build_message(_request(body="Olé", html="<p>Olé</p>", charset="ISO-8859-1"))
        assert message.charset == "iso-8859-1"
        assert message.parts[0].data == b"Ol\xe9\n"
        assert message.parts[1].data == b"<p>Ol\xe9</p>"

    def test_default_charset_used(self) -> None:
        """The default charset applies when the request names none."""
        message = build_message(_request(body="Olé"), default_charset="iso-8859-15")
        assert message.charset == "iso-8859-15"

    def test_request_charset_wins(self) -> None:
        """A request charset overrides the default."""
        message = build_message(_request(body="Olé", charset="utf-8"), default_charset="iso-8859-1")
        assert message.charset == "utf-8"

    def test_wrap(self) -> None:
        """Bodies are filled only when requested."""
        long_body = " ".join(["word"] * 30)
        assert "\n" not in build_message(_request(body=long_body)).parts[0].text
        wrapped = build_message(_request(body=long_body, wrap=True), wrap_width=40).parts[0].text
        assert all(len(line) <= 40 for line in wrapped.split("\n"))

    def test_encoding_error_propagates(self) -> None:
        """Content outside the requested charset aborts the build."""
        with pytest.raises(MailEncodingError):
            build_message(_request(subject="☃ news", charset="iso-8859-1"))


class TestBuildMessageHeaders:
    """Tests for the standard and extra headers."""

    def test_standard_header_order(self) -> None:
        """From, To, Cc, Bcc and Subject come first, in that order."""
        message = build_message(_request())
        assert [name for name, _ in message.headers] == ["From", "To", "Cc", "Bcc", "Subject"]

    def test_bare_addresses(self) -> None:
        """Without display names the headers carry bare addresses."""
        message = build_message(_request())
        assert message.get("From") == "noreply@example.org"
        assert message.get("To") == "pat@example.org"
        assert message.get("Cc") == ""

    def test_display_names(self) -> None:
        """Display names are quoted in front of the addresses."""
        message = build_message(_request(fromname="Dreamscape", toname="Pat"))
        assert message.get("From") == '"Dreamscape" <noreply@example.org>'
        assert message.get("To") == '"Pat" <pat@example.org>'

    def test_non_ascii_subject_encoded(self) -> None:
        """A non-ASCII subject becomes an encoded-word in the message charset."""
        message = build_message(_request(subject="Café", charset="iso-8859-1"))
        subject = message.get("Subject")
        assert subject is not None
        assert subject.startswith("=?iso-8859-1?b?")
        assert str(make_header(decode_header(subject))) == "Café"

    def test_non_ascii_fromname_encoded(self) -> None:
        """A non-ASCII sender name is encoded and then quoted."""
        message = build_message(_request(fromname="José"))
        value = message.get("From")
        assert value is not None
        assert value.startswith('"=?utf-8?b?')
        assert value.endswith('?=" <noreply@example.org>')

    def test_toname_encoded_as_utf8(self) -> None:
        """The recipient name is encoded as UTF-8 whatever the message charset."""
        message = build_message(_request(toname="Zoë", body="Olé", charset="iso-8859-1"))
        value = message.get("To")
        assert value is not None
        assert "=?utf-8?b?" in value

    def test_hostile_display_name(self) -> None:
        """Quotes and line breaks never reach the header."""
        message = build_message(_request(fromname='Eve"\nEvil'))
        assert message.get("From") == '"EveEvil" <noreply@example.org>'

    def test_subject_line_breaks_collapsed(self) -> None:
        """Line breaks in the subject become spaces."""
        message = build_message(_request(subject="Hello\nWorld"))
        assert message.get("Subject") == "Hello World"

    def test_non_ascii_subject_line_breaks_collapsed(self) -> None:
        """Subjects are unfolded before they are encoded."""
        subject = build_message(_request(subject="Café\r\ncrème")).get("Subject")
        assert subject is not None
        assert str(make_header(decode_header(subject))) == "Café crème"

    def test_display_names_cleaned_before_encoding(self) -> None:
        """Unsafe characters are stripped from non-ASCII names too."""
        message = build_message(_request(fromname='Zoë"\nAdmin', toname="Zoë\r\nPat"))
        sender = message.get("From")
        assert sender is not None
        name = sender.split(" <")[0].strip('"')
        assert str(make_header(decode_header(name))) == "ZoëAdmin"

    def test_cc_and_bcc_lists(self) -> None:
        """Sequences of addresses are joined into one header."""
        message = build_message(_request(cc=["a@example.org", "b@example.org"], bcc="c@example.org"))
        assert message.get("Cc") == "a@example.org, b@example.org"
        assert message.get("Bcc") == "c@example.org"

    def test_extra_headers_after_standard(self) -> None:
        """Extra headers follow the standard ones, repeated values kept."""
        message = build_message(
            _request(headers={"X-Campaign": "spring", "X-Tag": ["one", "two"], "Reply-To": "help@example.org"})
        )
        names = [name for name, _ in message.headers]
        assert names[:5] == ["From", "To", "Cc", "Bcc", "Subject"]
        assert message.get_all("x-tag") == ["one", "two"]
        assert message.get("Reply-To") == "help@example.org"


class TestToMime:
    """Tests for the stdlib MIME tree."""

    def test_plain_structure(self) -> None:
        """A single part becomes a non-multipart message."""
        mime = to_mime(build_message(_request()))
        assert mime.get_content_type() == "text/plain"
        assert mime.get_content_charset() == "us-ascii"
        assert mime["Content-Transfer-Encoding"] == "quoted-printable"

    def test_alternative_structure(self) -> None:
        """Two parts become multipart/alternative."""
        mime = to_mime(build_message(_request(html="<b>hi</b>")))
        assert mime.get_content_type() == "multipart/alternative"
        assert [part.get_content_type() for part in mime.get_payload()] == ["text/plain", "text/html"]

    def test_date_added(self) -> None:
        """A Date header is added when the caller set none."""
        assert to_mime(build_message(_request()))["Date"]

    def test_caller_date_kept(self) -> None:
        """A caller-supplied Date is not duplicated."""
        date = "Mon, 05 Oct 2026 10:00:00 +0000"
        mime = to_mime(build_message(_request(headers={"Date": date})))
        assert mime.get_all("Date") == [date]

    def test_empty_cc_bcc_omitted(self) -> None:
        """Empty Cc and Bcc headers are left out."""
        mime = to_mime(build_message(_request()), include_bcc=True)
        assert "Cc" not in mime
        assert "Bcc" not in mime

    def test_bcc_dropped_by_default(self) -> None:
        """Bcc is only kept on request."""
        message = build_message(_request(bcc="hidden@example.org"))
        assert "Bcc" not in to_mime(message)
        assert to_mime(message, include_bcc=True)["Bcc"] == "hidden@example.org"


class TestSerialization:
    """Tests for wire bytes."""

    def test_crlf_line_endings(self) -> None:
        """Wire payloads use CRLF line endings."""
        payload = serialize_message(build_message(_request(body="one\ntwo")))
        assert b"\r\n" in payload
        assert b"\n" not in payload.replace(b"\r\n", b"")

    def test_quoted_printable_body(self) -> None:
        """Bodies round-trip through quoted-printable in the negotiated charset."""
        payload = serialize_message(build_message(_request(body="Olé " * 30, charset="iso-8859-1")))
        parsed = message_from_bytes(payload)
        assert parsed.get_payload(decode=True) == ("Olé " * 30).encode("iso-8859-1")
        assert b"=E9" in payload

    def test_payload_is_seven_bit(self) -> None:
        """Encoded headers and quoted-printable bodies keep the payload ASCII."""
        payload = serialize_message(build_message(_request(subject="Été", body="Crème brûlée", fromname="Zoë")))
        payload.decode("ascii")

    def test_from_lines_not_mangled(self) -> None:
        """Body lines starting with "From " are sent verbatim."""
        payload = serialize_message(build_message(_request(body="From the team\nFrom us")))
        assert b">From" not in payload
        assert b"From the team" in payload

    def test_subject_cannot_inject_headers(self) -> None:
        """A line break in the subject never starts a new header line."""
        payload = serialize_message(build_message(_request(subject="Hi\nBcc: spy@example.net")))
        assert b"Subject: Hi Bcc: spy@example.net\r\n" in payload
        assert message_from_bytes(payload)["Bcc"] is None

    def test_long_headers_folded(self) -> None:
        """Long encoded subjects are folded between encoded-words."""
        subject = " ".join(["Réunion générale des étudiants"] * 12)
        payload = serialize_message(build_message(_request(subject=subject)))
        head = payload.split(b"\r\n\r\n", 1)[0]
        lines = head.split(b"\r\n")
        assert all(len(line) <= 998 for line in lines)
        assert any(line.startswith(b" =?utf-8?b?") for line in lines)
        parsed = message_from_bytes(payload)
        assert str(make_header(decode_header(parsed["Subject"]))) == subject

    def test_long_address_list_folded(self) -> None:
        """Long recipient lists are folded at whitespace."""
        cc = [f"member{index}@example.org" for index in range(20)]
        payload = serialize_message(build_message(_request(cc=cc)))
        head = payload.split(b"\r\n\r\n", 1)[0]
        assert all(len(line) <= 78 for line in head.split(b"\r\n"))
        assert recipient_addresses(message_from_bytes(payload)) == ["pat@example.org", *cc]

    def test_bcc_not_on_wire(self) -> None:
        """Bcc recipients do not appear in the payload."""
        payload = serialize_message(build_message(_request(bcc="hidden@example.org")))
        assert b"hidden@example.org" not in payload

    def test_quopri_of_part_data(self) -> None:
        """The html part is the quoted-printable form of its data."""
        message = build_message(_request(html="<p>é</p>"))
        payload = serialize_message(message)
        parsed = message_from_bytes(payload)
        html = parsed.get_payload()[1]
        assert quopri.decodestring(html.get_payload().encode("ascii")) == message.parts[1].data

    def test_prebuilt_bcc_stripped_without_mutation(self) -> None:
        """Prebuilt messages lose Bcc on the wire but the caller's object is kept."""
        mime = MIMEText("hello")
        mime["From"] = "a@example.org"
        mime["To"] = "b@example.org"
        mime["Bcc"] = "c@example.org"
        payload = serialize_prebuilt(mime)
        assert b"c@example.org" not in payload
        assert mime["Bcc"] == "c@example.org"


class TestAddresses:
    """Tests for address parsing helpers."""

    def test_parse_addresses(self) -> None:
        """Display names are dropped and lists are split."""
        assert parse_addresses(['"Ada" <ada@example.org>, bob@example.org']) == [
            "ada@example.org",
            "bob@example.org",
        ]

    def test_parse_empty(self) -> None:
        """Empty header values yield nothing."""
        assert parse_addresses(["", ""]) == []

    def test_envelope_from(self) -> None:
        """The sender is the address part of From."""
        assert envelope_from(build_message(_request(fromname="Site"))) == "noreply@example.org"

    def test_envelope_from_missing(self) -> None:
        """A message without From has a null sender."""
        assert envelope_from(MIMEText("x")) == ""

    def test_recipient_order(self) -> None:
        """Recipients are To, then Cc, then Bcc."""
        message = build_message(_request(cc="c@example.org, d@example.org", bcc=["e@example.org"]))
        assert recipient_addresses(message) == [
            "pat@example.org",
            "c@example.org",
            "d@example.org",
            "e@example.org",
        ]

    def test_split_address(self) -> None:
        """The last @ separates local part and domain."""
        assert split_address('"odd@local"@example.org') == ('"odd@local"', "example.org")

    @pytest.mark.parametrize("address", ["no-at-sign", "@example.org", "local@"])
    def test_split_malformed(self, address: str) -> None:
        """Addresses without both halves raise MalformedAddressError."""
        with pytest.raises(MalformedAddressError) as exc_info:
            split_address(address)
        assert exc_info.value.address == address


class TestRoutingHint:
    """Tests for the single-recipient sharding key."""

    def test_single_recipient(self) -> None:
        """One recipient gives domain@local."""
        assert routing_hint(["a@x.com"]) == RoutingHint(value="x.com@a")

    def test_lowercased(self) -> None:
        """Both halves are lower-cased."""
        assert routing_hint(["Pat.Smith@Example.ORG"]) == RoutingHint(value="example.org@pat.smith")

    def test_several_recipients(self) -> None:
        """Two or more recipients give no hint."""
        assert routing_hint(["a@x.com", "b@y.com"]) is None

    def test_no_recipient(self) -> None:
        """Zero recipients give no hint."""
        assert routing_hint([]) is None

    def test_malformed_recipient(self) -> None:
        """An unusable address is absorbed and gives no hint."""
        assert routing_hint(["localhost-only"]) is None


class TestMakeEnvelope:
    """Tests for envelope derivation."""

    def test_single_recipient(self) -> None:
        """A plain request yields sender, recipient, payload and hint."""
        envelope = make_envelope(build_message(_request(to="A@X.com")))
        assert envelope.env_from == "noreply@example.org"
        assert envelope.recipients == ("A@X.com",)
        assert envelope.routing_hint == "x.com@a"
        assert envelope.payload.startswith(b"From: noreply@example.org\r\n")

    def test_cc_disables_hint(self) -> None:
        """A Cc recipient makes the message multi-recipient."""
        envelope = make_envelope(build_message(_request(cc="other@example.org")))
        assert envelope.recipients == ("pat@example.org", "other@example.org")
        assert envelope.routing_hint is None

    def test_bcc_in_envelope_only(self) -> None:
        """Bcc recipients are in the envelope but not in the payload."""
        envelope = make_envelope(build_message(_request(bcc="hidden@example.org")))
        assert "hidden@example.org" in envelope.recipients
        assert b"hidden@example.org" not in envelope.payload

    def test_prebuilt_message(self) -> None:
        """Prebuilt messages derive their envelope from headers."""
        mime = MIMEText("hello")
        mime["From"] = '"Ops" <ops@example.org>'
        mime["To"] = "Oncall@Example.org"
        envelope = make_envelope(mime)
        assert envelope.env_from == "ops@example.org"
        assert envelope.recipients == ("Oncall@Example.org",)
        assert envelope.routing_hint == "example.org@oncall"
        assert message_from_bytes(envelope.payload).get_payload() == "hello"

    def test_prebuilt_without_recipients(self) -> None:
        """Messages without recipients are allowed and carry no hint."""
        envelope = make_envelope(MIMEText("orphan"))
        assert envelope.recipients == ()
        assert envelope.routing_hint is None
