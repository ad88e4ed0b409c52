"""Minimal HTML pages for the shareable-link flow.

The ad screen is a placeholder; no ad network is involved.
"""
import json
from html import escape

_LAYOUT = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
{head}
</head>
<body style="font-family: Arial, sans-serif; text-align: center; padding-top: 10vh;">
{body}
</body>
</html>
"""


def _page(title: str, body: str, head: str = "") -> str:
    return _LAYOUT.format(title=escape(title), head=head, body=body)


def ad_screen(armed_url: str, countdown_seconds: int) -> str:
    """Countdown page that loads ``armed_url`` when it reaches zero."""
    url = escape(armed_url, quote=True)
    js_url = json.dumps(armed_url).replace("</", "<\\/")
    head = f'<meta http-equiv="refresh" content="{countdown_seconds};url={url}">'
    body = f"""<h2>Your file is almost ready!</h2>
<p>Please wait <span id="countdown">{countdown_seconds}</span> seconds while we prepare your download.</p>
<div style="width: 350px; height: 350px; margin: 20px auto; border: 1px solid #ddd;
            display: flex; align-items: center; justify-content: center;">Advertisement</div>
<p><a href="{url}">Continue to download</a></p>
<script>
var remaining = {countdown_seconds};
var timer = setInterval(function () {{
  remaining -= 1;
  document.getElementById("countdown").textContent = Math.max(remaining, 0);
  if (remaining <= 0) {{ clearInterval(timer); window.location.href = {js_url}; }}
}}, 1000);
</script>"""
    return _page("Preparing download", body, head)


def passcode_prompt(slug: str, message: str) -> str:
    """Passcode form that resubmits with ``ad=seen`` so the ad is not shown twice."""
    action = escape(f"/s/{slug}", quote=True)
    body = f"""<h2>Private file</h2>
<p>{escape(message)}</p>
<form method="get" action="{action}">
<input type="hidden" name="ad" value="seen">
<input type="password" name="passcode" placeholder="Passcode" autofocus required>
<button type="submit">Download</button>
</form>"""
    return _page("Passcode required", body)


def error_page(message: str) -> str:
    return _page("Download unavailable", f"<h2>Download unavailable</h2>\n<p>{escape(message)}</p>")
