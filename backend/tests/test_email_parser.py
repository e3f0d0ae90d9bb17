from email.message import EmailMessage

from services.email_parser import is_email_file, parse_email, strip_html_to_text
from conftest import eml_bytes, png_bytes


def test_detects_email_by_mime_or_suffix():
    assert is_email_file("message/rfc822", "x.bin")
    assert is_email_file("application/vnd.ms-outlook", "x")
    assert is_email_file(None, "Inbox/Re: numbers.EML")
    assert is_email_file("application/octet-stream", "note.msg")
    assert not is_email_file("application/pdf", "a.pdf")


def test_parse_eml_headers_body_and_attachments():
    image = png_bytes()
    raw = eml_bytes(attachments=[
        ("chart.png", image, "image", "png"),
        ("notes.txt", b"line one", "text", "plain"),
    ])

    parsed = parse_email(raw, "message.eml")

    assert parsed.parse_error is None
    assert parsed.subject == "Quarterly numbers"
    assert parsed.sender == "alice@example.com"
    assert parsed.to == "bob@example.com"
    assert parsed.date.year == 2023
    assert parsed.text == "Please see attached."
    assert [a.filename for a in parsed.attachments] == ["chart.png", "notes.txt"]
    assert parsed.attachments[0].content == image
    assert parsed.attachments[0].content_type == "image/png"


def test_zero_length_attachments_are_skipped():
    raw = eml_bytes(attachments=[("empty.bin", b"", "application", "octet-stream")])
    assert parse_email(raw, "m.eml").attachments == []


def test_html_only_body_is_stripped_to_text():
    msg = EmailMessage()
    msg["Subject"] = "html"
    msg.set_content("<html><body><p>Hello <b>there</b></p><script>x()</script></body></html>", subtype="html")

    parsed = parse_email(msg.as_bytes(), "h.eml")

    assert parsed.text == "Hello there"
    assert parsed.html is not None


def test_strip_html_to_text():
    assert strip_html_to_text("<div>a<br>b</div><style>p{}</style>") == "a b"


def test_broken_msg_reports_parse_error():
    parsed = parse_email(b"definitely not an outlook file", "broken.msg")
    assert parsed.parse_error.startswith("Email parsing failed:")
    assert parsed.attachments == []
