"""SMTP e-mail notifications with HTML bodies rendered by Jinja2."""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr

from jinja2 import DictLoader, Environment, TemplateError

from ghwatch.models import (
    CommitInfo,
    NotificationResult,
    OrganizationInfo,
    OrganizationRepository,
    ReleaseInfo,
    RepositoryInfo,
)
from ghwatch.notify.base import commit_body, new_repository_body, release_body

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30  # seconds

_STYLE = """\
<style>
  body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .header { background-color: #24292e; color: white; padding: 20px; border-radius: 5px 5px 0 0; }
  .content { background-color: #f6f8fa; padding: 20px; border-radius: 0 0 5px 5px; }
  .card { background-color: white; padding: 15px; margin: 10px 0; border-radius: 5px; }
  .meta { color: #586069; font-size: 14px; }
  .button { display: inline-block; background-color: #0366d6; color: white; padding: 10px 20px;
            text-decoration: none; border-radius: 5px; margin: 10px 0; }
  .release-body { background-color: #f8f9fa; padding: 10px; white-space: pre-wrap; }
</style>
"""

_REPO_CARD = """\
<div class="card">
  <h4>Repository Info</h4>
  <p><strong>Description:</strong> {{ repo.description or "No description" }}</p>
  <p><strong>Language:</strong> {{ repo.language or "Not specified" }}</p>
  <p><strong>Stars:</strong> {{ repo.stars }} | <strong>Forks:</strong> {{ repo.forks }}</p>
  <a href="{{ repo.url }}" class="button">View Repository</a>
</div>
"""

TEMPLATES = {
    "layout.html": """\
<html>
<head>""" + _STYLE + """</head>
<body>
  <div class="container">
    <div class="header"><h2>{% block heading %}{% endblock %}</h2></div>
    <div class="content">{% block content %}{% endblock %}</div>
  </div>
</body>
</html>
""",
    "commit.html": """\
{% extends "layout.html" %}
{% block heading %}New Commit in {{ repo.full_name }}{% endblock %}
{% block content %}
<div class="card" style="border-left: 4px solid #28a745;">
  <h3>Latest Commit</h3>
  <p><strong>Message:</strong> {{ commit.message }}</p>
  <div class="meta">
    <p><strong>Author:</strong> {{ commit.author }}</p>
    <p><strong>Branch:</strong> {{ commit.branch }}</p>
    <p><strong>Date:</strong> {{ commit.date }}</p>
    <p><strong>SHA:</strong> <code>{{ commit.short_sha }}</code></p>
  </div>
  <a href="{{ commit.url }}" class="button">View Commit</a>
</div>
""" + _REPO_CARD + """{% endblock %}
""",
    "release.html": """\
{% extends "layout.html" %}
{% block heading %}New Release in {{ repo.full_name }}{% endblock %}
{% block content %}
<div class="card" style="border-left: 4px solid #0366d6;">
  <h3>{{ release.name or release.tag }}</h3>
  <div class="meta">
    <p><strong>Tag:</strong> <code>{{ release.tag }}</code></p>
    <p><strong>Author:</strong> {{ release.author }}</p>
    <p><strong>Published:</strong> {{ release.published_at }}</p>
    {% if release.prerelease %}<p><strong>Pre-release</strong></p>{% endif %}
    {% if release.draft %}<p><strong>Draft</strong></p>{% endif %}
  </div>
  {% if release.body %}<div class="release-body">{{ release.body }}</div>{% endif %}
  <a href="{{ release.url }}" class="button">View Release</a>
</div>
""" + _REPO_CARD + """{% endblock %}
""",
    "new_repository.html": """\
{% extends "layout.html" %}
{% block heading %}New Repository in {{ organization.display_name }}{% endblock %}
{% block content %}
<div class="card" style="border-left: 4px solid #6f42c1;">
  <h3>{{ repository.full_name }}</h3>
  <p>{{ repository.description or "No description" }}</p>
  <div class="meta">
    <p><strong>Language:</strong> {{ repository.language or "Not specified" }}</p>
    <p><strong>Created:</strong> {{ repository.created_at }}</p>
  </div>
  <a href="{{ repository.url }}" class="button">View Repository</a>
</div>
{% endblock %}
""",
    "test.html": """\
{% extends "layout.html" %}
{% block heading %}GitHub Monitor Test Email{% endblock %}
{% block content %}
<p>This is a test email from your GitHub Monitor service.</p>
<p>If you receive this email, your email configuration is working correctly!</p>
<p>Time sent: {{ sent_at }}</p>
{% endblock %}
""",
}

_env = Environment(loader=DictLoader(TEMPLATES), autoescape=True)


def render(template: str, **context) -> str:
    return _env.get_template(template).render(**context)


class EmailNotifier:
    """Sends one e-mail per detected change to a fixed recipient list."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        use_ssl: bool = False,
        from_name: str = "GitHub Monitor",
        from_email: str = "",
        to: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_ssl = use_ssl
        self.from_name = from_name
        self.from_email = from_email
        self.recipients = [addr.strip() for addr in to.split(",") if addr.strip()]

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT)
        try:
            if not self.use_ssl:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if self.user:
                smtp.login(self.user, self.password)
        except Exception:
            smtp.close()
            raise
        return smtp

    def _build_message(self, subject: str, text: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = ", ".join(self.recipients)
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        return message

    def _send(self, subject: str, text: str, template: str, **context) -> NotificationResult:
        if not self.recipients:
            return NotificationResult.failed("No e-mail recipients configured")

        try:
            message = self._build_message(subject, text, render(template, **context))
        except TemplateError as e:
            return NotificationResult.failed(f"Failed to render {template}: {e}")

        try:
            with self._connect() as smtp:
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            return NotificationResult.failed(str(e))
        return NotificationResult.ok(f"E-mail sent to {len(self.recipients)} recipient(s)")

    def test_connection(self) -> bool:
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("E-mail service connection failed: %s", e)
            return False
        return True

    def send_commit_notification(
        self, repo: RepositoryInfo, commit: CommitInfo
    ) -> NotificationResult:
        return self._send(
            f"New commit in {repo.full_name}",
            commit_body(commit),
            "commit.html",
            repo=repo,
            commit=commit,
        )

    def send_release_notification(
        self, repo: RepositoryInfo, release: ReleaseInfo
    ) -> NotificationResult:
        return self._send(
            f"New release {release.tag} in {repo.full_name}",
            release_body(release),
            "release.html",
            repo=repo,
            release=release,
        )

    def send_new_repository_notification(
        self, organization: OrganizationInfo, repository: OrganizationRepository
    ) -> NotificationResult:
        return self._send(
            f"New repository {repository.full_name} in {organization.display_name}",
            new_repository_body(repository),
            "new_repository.html",
            organization=organization,
            repository=repository,
        )

    def send_test_notification(self) -> NotificationResult:
        sent_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return self._send(
            "GitHub Monitor Test Email",
            f"Test e-mail sent at {sent_at}",
            "test.html",
            sent_at=sent_at,
        )
