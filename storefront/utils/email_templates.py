"""Transactional email templates (Jinja2, HTML autoescaped)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from jinja2 import Environment, StrictUndefined

__all__ = ["RenderedEmail", "render_email", "TEMPLATES"]

_WRAPPER_OPEN = (
    '<!DOCTYPE html><html><head><meta charset="UTF-8"></head>'
    "<body style=\"margin:0;padding:0;background:#0E0A06;font-family:'Helvetica Neue',Arial,sans-serif;\">"
    '<div style="max-width:580px;margin:0 auto;padding:48px 20px;color:#FAF6F0;">'
)
_WRAPPER_CLOSE = "</div></body></html>"

_WELCOME_HTML = _WRAPPER_OPEN + """
<h1 style="font-size:30px;font-weight:300;margin:0 0 32px;text-align:center;">{{ product_name }}</h1>
<div style="background:#150F08;border:1px solid rgba(201,169,110,0.15);padding:40px;">
  <p style="font-size:11px;letter-spacing:0.2em;text-transform:uppercase;color:#C9A96E;margin:0 0 16px;">Welcome, {{ first_name }}</p>
  <p style="font-size:20px;font-weight:300;line-height:1.5;margin:0 0 16px;">Your <strong>{{ plan }}</strong> membership is active.</p>
  <p style="font-size:15px;color:#D4C5B0;line-height:1.8;margin:0 0 32px;">Click the button below to access your dashboard. No password required.</p>
  <div style="text-align:center;margin:0 0 32px;">
    <a href="{{ login_url }}" style="display:inline-block;background:#C9A96E;color:#0E0A06;padding:18px 48px;text-decoration:none;font-weight:700;font-size:12px;letter-spacing:0.22em;text-transform:uppercase;">Access My Dashboard</a>
    {% if link_expires_hours %}<p style="font-size:12px;color:rgba(250,246,240,0.3);margin:12px 0 0;">This link expires in {{ link_expires_hours }} hours and is good for one use</p>{% endif %}
  </div>
  {% if tier == "creator" %}
  <div style="background:#1A1208;border-left:3px solid #C9A96E;padding:20px 24px;margin:24px 0;">
    <p style="margin:0 0 6px;font-size:11px;color:#C9A96E;text-transform:uppercase;">Creator License Active</p>
    <p style="margin:0;font-size:14px;color:#D4C5B0;">You can now sell {{ product_name }} as your own product and keep 100% of sales.</p>
  </div>
  {% elif tier == "agency" %}
  <div style="background:#1A1208;border-left:3px solid #C9A96E;padding:20px 24px;margin:24px 0;">
    <p style="margin:0 0 6px;font-size:11px;color:#C9A96E;text-transform:uppercase;">Agency Access Active</p>
    <p style="margin:0;font-size:14px;color:#D4C5B0;">Your onboarding call will be scheduled within 24 hours.</p>
  </div>
  {% endif %}
  {% if support_email %}
  <p style="font-size:13px;color:#D4C5B0;line-height:1.8;margin:24px 0 0;">Need a new login link later? Email <a href="mailto:{{ support_email }}" style="color:#C9A96E;">{{ support_email }}</a>.</p>
  {% endif %}
</div>
<p style="font-size:11px;color:rgba(250,246,240,0.25);text-align:center;margin-top:28px;"><a href="{{ site_url }}" style="color:rgba(201,169,110,0.4);">{{ site_url }}</a></p>
""" + _WRAPPER_CLOSE

_SALE_HTML = """
<div style="font-family:sans-serif;padding:32px;background:#0E0A06;color:#FAF6F0;max-width:480px;">
  <h2 style="color:#C9A96E;font-weight:300;font-size:22px;margin:0 0 24px;">New Sale</h2>
  <table style="width:100%;border-collapse:collapse;font-size:14px;">
    <tr><td style="padding:10px 0;width:100px;">Name</td><td>{{ name }}</td></tr>
    <tr><td style="padding:10px 0;">Email</td><td>{{ email or "(none)" }}</td></tr>
    <tr><td style="padding:10px 0;">Plan</td><td>{{ plan }}</td></tr>
    <tr><td style="padding:10px 0;">Amount</td><td style="color:#C9A96E;font-weight:700;font-size:18px;">${{ amount }} {{ currency }}</td></tr>
    <tr><td style="padding:10px 0;">Time</td><td>{{ sold_at }}</td></tr>
  </table>
  <p style="margin-top:24px;font-size:12px;color:rgba(250,246,240,0.3);">{{ product_name }}</p>
</div>
"""

_PAYMENT_FAILED_HTML = """
<div style="font-family:sans-serif;max-width:560px;padding:40px;background:#0E0A06;color:#FAF6F0;">
  <h2 style="color:#C9A96E;font-weight:300;margin:0 0 16px;">Payment Issue</h2>
  <p style="color:#D4C5B0;line-height:1.7;margin:0 0 24px;">We weren't able to process your latest payment for {{ product_name }}. Your access remains active for now. Please update your payment method to avoid interruption.</p>
  {% if billing_portal_url %}<a href="{{ billing_portal_url }}" style="display:inline-block;background:#C9A96E;color:#0E0A06;padding:14px 32px;text-decoration:none;font-weight:700;font-size:11px;text-transform:uppercase;">Update Payment Method</a>{% endif %}
  {% if support_email %}<p style="margin-top:32px;font-size:12px;color:rgba(250,246,240,0.3);">Questions? <a href="mailto:{{ support_email }}" style="color:#C9A96E;">{{ support_email }}</a></p>{% endif %}
</div>
"""

# name -> (subject template, html template)
TEMPLATES: Dict[str, Tuple[str, str]] = {
    "welcome": ("You're in, {{ first_name }}: access your {{ product_name }} dashboard", _WELCOME_HTML),
    "sale_notification": ("[Sale] New {{ plan }} purchase ${{ amount }} {{ currency }}", _SALE_HTML),
    "payment_failed": ("Action needed: payment issue with {{ product_name }}", _PAYMENT_FAILED_HTML),
}

_html_env = Environment(undefined=StrictUndefined, autoescape=True)
_text_env = Environment(undefined=StrictUndefined, autoescape=False)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str


def render_email(template: str, data: Mapping[str, Any]) -> RenderedEmail:
    """Render subject and body for ``template``. Unknown names raise ``KeyError``."""
    subject_src, html_src = TEMPLATES[template]
    variables: Dict[str, Any] = dict(data)
    return RenderedEmail(
        subject=_text_env.from_string(subject_src).render(**variables).strip(),
        html=_html_env.from_string(html_src).render(**variables),
    )
