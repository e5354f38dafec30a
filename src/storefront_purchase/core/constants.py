"""
Storefront endpoints and DOM selectors used by the purchase flow
"""

STORE_HOMEPAGE_EN = "https://store.epicgames.com/en-US/"
PURCHASE_ENDPOINT = "https://www.epicgames.com/store/purchase"

# Short flow (purchase iframe opened directly)
COOKIE_CONSENT_BUTTON = "button#onetrust-accept-btn-handler"
PLACE_ORDER_BUTTON = "button.payment-btn:not([disabled])"
EU_REFUND_AGREE_BUTTON = (
    "div.payment-confirm__actions > button.payment-btn.payment-confirm__btn.payment-btn--primary"
)
PURCHASE_ERROR_ALERT = "span.payment-alert__content"
HCAPTCHA_CHALLENGE_IFRAME = '.h_captcha_challenge > iframe[src*="hcaptcha"]'

RECEIPT_HASH_FRAGMENT = "/purchase/receipt"
RECEIPT_PREDICATE = f"() => document.location.hash.includes('{RECEIPT_HASH_FRAGMENT}')"

UNKNOWN_PURCHASE_ERROR = "Unknown purchase error"

# Full flow (starting from the product page)
PURCHASE_CTA_BUTTON = "button[data-testid='purchase-cta-button']:not([aria-disabled='true'])"
PURCHASE_IFRAME = "#webPurchaseContainer > iframe"
IFRAME_PAYMENT_BUTTON = "button.payment-btn"
OWNED_INDICATOR = "button[data-testid='purchase-cta-button'] > span[data-component='Icon']"

AGE_GATE_COOKIE = {
    "name": "HAS_ACCEPTED_AGE_GATE_ONCE",
    "domain": "www.epicgames.com",
    "value": "true",
    "path": "/",
}

HCAPTCHA_COOKIE_DOMAIN = ".hcaptcha.com"

CLICK_DELAY_MS = 100


def build_offer_purchase_url(namespace: str, offer_id: str, endpoint: str = PURCHASE_ENDPOINT) -> str:
    """Purchase iframe URL for a single (namespace, offer) pair"""
    return (
        f"{endpoint}?highlightColor=0078f2&offers=1-{namespace}-{offer_id}"
        "&orderId&purchaseToken&showNavigation=true"
    )


def build_product_url(slug: str, homepage: str = STORE_HOMEPAGE_EN) -> str:
    return f"{homepage}p/{slug}"
