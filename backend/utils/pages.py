"""
HTML pages for the browser-facing routes. Presentation only, no state.
"""
import json
from datetime import datetime
from html import escape
from typing import Optional
from urllib.parse import quote

APP_NAME = "AI Content Humanizer"
APP_ORIGIN = "https://demo.imaginea.store"
APP_FRAME_URL = f"{APP_ORIGIN}/track"

# Embedded-app buttons reserved for paid subscribers
PREMIUM_BUTTONS = ("printDashboard", "analysis")

ACCESS_BRIDGE_SCRIPT = """
    const access = __ACCESS_CONFIG__;
    const modal = document.getElementById('upgradeModal');

    function closeModal() {
        if (modal) modal.classList.remove('active');
    }

    function upgradeNow() {
        window.location.href = '/checkout?email=' + encodeURIComponent(access.email);
    }

    window.addEventListener('message', (event) => {
        if (event.origin !== access.appOrigin) return;
        if (!event.data || event.data.type !== 'BUTTON_CLICK') return;

        const buttonName = event.data.button;
        if (access.accessType === 'trial' && access.premiumButtons.includes(buttonName)) {
            event.source.postMessage({
                type: 'BUTTON_BLOCKED',
                message: 'This feature requires a paid subscription',
                showUpgrade: true
            }, event.origin);
            if (modal) modal.classList.add('active');
        } else if (access.accessType === 'paid') {
            event.source.postMessage({type: 'BUTTON_ALLOWED', button: buttonName}, event.origin);
        }
    });

    const frame = document.getElementById('appFrame');
    frame.addEventListener('load', () => {
        frame.contentWindow.postMessage({
            type: 'ACCESS_LEVEL',
            accessType: access.accessType,
            email: access.email
        }, access.appOrigin);
    });

    if (modal) {
        document.getElementById('closeModal').addEventListener('click', closeModal);
        document.getElementById('upgradeNow').addEventListener('click', upgradeNow);
        modal.addEventListener('click', (e) => {
            if (e.target.id === 'upgradeModal') closeModal();
        });
    }
"""

BASE_STYLE = """
* { box-sizing: border-box; }
body { margin: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
       background: #0a192f; color: #ccd6f6; }
.card { max-width: 480px; margin: 10vh auto; padding: 32px; background: #112240; border-radius: 12px; text-align: center; }
.button, button { display: inline-block; padding: 12px 24px; border: 0; border-radius: 8px;
                  background: #64ffda; color: #0a192f; font-weight: 600; text-decoration: none; cursor: pointer; }
input { width: 100%; padding: 12px; margin: 16px 0; border-radius: 8px; border: 1px solid #233554; }
.status-banner { position: fixed; top: 0; left: 0; right: 0; z-index: 10000; padding: 10px 24px;
                 background: rgba(10, 25, 47, 0.85); display: flex; justify-content: space-between; align-items: center; }
.badge { background: rgba(100, 255, 218, 0.1); color: #64ffda; border-radius: 20px; padding: 4px 12px; }
.app-frame { position: fixed; top: 52px; left: 0; right: 0; bottom: 0; }
.app-frame iframe { width: 100%; height: 100%; border: 0; }
.modal-overlay { display: none; position: fixed; inset: 0; z-index: 20000; background: rgba(2, 12, 27, 0.8);
                 align-items: center; justify-content: center; }
.modal-overlay.active { display: flex; }
.modal { max-width: 420px; padding: 32px; background: #112240; border-radius: 12px; text-align: center; }
.modal .secondary { background: transparent; color: #ccd6f6; border: 1px solid #233554; }
"""


def _checkout_link(email: str) -> str:
    return f"/checkout?email={quote(email, safe='')}"


def html_page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
    <style>{BASE_STYLE}</style>
</head>
<body>
{body}
</body>
</html>"""


def email_form_page() -> str:
    body = f"""
    <div class="card">
        <h1>{APP_NAME}</h1>
        <p>Enter your email to start your <strong>FREE 1-day trial</strong></p>
        <form action="/" method="GET">
            <input type="email" name="email" required placeholder="your@email.com" />
            <button type="submit">Start Free Trial</button>
        </form>
    </div>"""
    return html_page("Start Free Trial", body)


def _script_json(value) -> str:
    # Safe inside <script>: no "</script>" or HTML comment breakout
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def app_page(email: str, access_type: str, expires_at: Optional[datetime]) -> str:
    """
    Dashboard: status banner plus the embedded app.

    The page tells the embedded app the visitor's access level
    (``ACCESS_LEVEL``) and answers its ``BUTTON_CLICK`` messages. Trial
    visitors get ``BUTTON_BLOCKED`` and the upgrade modal for premium
    buttons; paid visitors get ``BUTTON_ALLOWED``.
    """
    if access_type == "paid":
        until = expires_at.strftime("%B %d, %Y") if expires_at else "next billing date"
        banner = f"""
    <div class="status-banner">
        <span><span class="badge">PRO</span> Active until {escape(until)}</span>
    </div>"""
        modal = ""
    else:
        expiry = expires_at.strftime("%Y-%m-%d %H:%M UTC") if expires_at else ""
        banner = f"""
    <div class="status-banner">
        <span><span class="badge">FREE TRIAL</span> Expires: {escape(expiry)}</span>
        <a href="{escape(_checkout_link(email))}" class="button">Upgrade to Pro</a>
    </div>"""
        modal = """
    <div class="modal-overlay" id="upgradeModal">
        <div class="modal">
            <h2>Premium Feature</h2>
            <p>This feature is only available for Pro subscribers. Upgrade now to unlock all features and get unlimited access!</p>
            <button class="secondary" id="closeModal">Maybe Later</button>
            <button id="upgradeNow">Upgrade to Pro</button>
        </div>
    </div>"""

    config = _script_json({
        "email": email,
        "accessType": access_type,
        "appOrigin": APP_ORIGIN,
        "premiumButtons": list(PREMIUM_BUTTONS),
    })
    body = f"""{banner}
    <div class="app-frame">
        <iframe id="appFrame" src="{escape(APP_FRAME_URL)}" title="{APP_NAME}"
                allow="clipboard-read; clipboard-write"
                sandbox="allow-same-origin allow-scripts allow-forms"></iframe>
    </div>{modal}
    <script>{ACCESS_BRIDGE_SCRIPT.replace("__ACCESS_CONFIG__", config)}</script>"""
    return html_page(f"{APP_NAME} - Dashboard", body)


def expired_page(email: str) -> str:
    body = f"""
    <div class="card">
        <h1>Your Trial Has Ended</h1>
        <p>Thanks for trying {APP_NAME}! Your 24-hour free trial has expired.
        Upgrade now to continue using all features.</p>
        <a href="{escape(_checkout_link(email))}" class="button">Upgrade to Pro</a>
    </div>"""
    return html_page("Trial Expired - Upgrade to Continue", body)


def payment_failed_page(status: Optional[str], email: str) -> str:
    body = f"""
    <div class="card">
        <h1>Payment Failed</h1>
        <p>Your payment was not successful. Status: <strong>{escape(status or 'unknown')}</strong></p>
        <p>You can continue using the free trial or try payment again.</p>
        <a href="/?email={escape(quote(email, safe=''))}" class="button">Back to App</a>
    </div>"""
    return html_page("Payment Failed", body)


def error_page(message: str) -> str:
    body = f"""
    <div class="card">
        <h1>Something went wrong</h1>
        <p>{escape(message)}</p>
    </div>"""
    return html_page("Error", body)
