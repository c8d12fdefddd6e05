"""Centralised selectors for product pages, the location modal and the catalog grid."""

# ==== LOCATION MODAL ====
# Ordered most specific first; the bare ``input`` entry is the last resort.
LOCATION_INPUT_STRATEGIES = (
    "#search",
    "input[name*='pincode']",
    "input[name*='pin']",
    "input[placeholder*='PIN' i]",
    "input[placeholder*='pincode' i]",
    "input[id*='pincode']",
    "input[id*='pin']",
    "input[class*='pincode']",
    ".pincode-input input",
    ".pin-input input",
    "input[type='number']",
    "input[type='text']",
    "input",
)
LOCATION_SUGGESTION_ITEM = "#automatic .searchitem-name"
LOCATION_SUGGESTION_NAME = ".item-name"
LOCATION_SUGGESTION_READY = f"{LOCATION_SUGGESTION_ITEM} {LOCATION_SUGGESTION_NAME}"
MODAL_CONTAINER = (
    "div[role='dialog'], .modal, .MuiDialog-root, .ant-modal, .ReactModal__Content"
)
SUBMIT_CONTROLS = (
    "button[type='submit']",
    "button:has-text('Submit')",
    "button:has-text('Continue')",
    "button:has-text('Go')",
    "button:has-text('Check')",
    "[class*='submit']",
    "[class*='confirm']",
    "[class*='continue']",
    "div[role='dialog'] button",
    ".modal button",
)

# ==== PRODUCT PAGE ====
SOLD_OUT_ALERT = "div.alert.alert-danger"
NOTIFY_ME = (
    "button.product_enquiry, "
    "button[data-bs-target='#enquiryModal'], "
    "[class*='notify-me']"
)
ADD_TO_CART = (
    "a.btn.btn-primary.add-to-cart, "
    "a[class*='add-to-cart'], button[class*='add-to-cart']"
)
OUT_OF_STOCK_HINT = (
    "[class*='out-of-stock'], [class*='unavailable'], .stock-unavailable"
)
PRICE = "[class*='price'], .product-price, [data-testid='price']"
PRODUCT_NAME = "h1, .product-title, [class*='product-name']"
PRODUCT_DETAIL = (
    "form.product-form, form[action*='cart'], .product-details, .product-detail, "
    "[class*='product-info'], [class*='product-single'], [itemtype*='schema.org/Product']"
)

# ==== COLLECTION GRID ====
CATALOG_CARD = (
    "[class*='product'], [class*='item'], .product-item, .product-card, .product"
)
CATALOG_CARD_TITLE = "h1, h2, h3, h4, [class*='title'], [class*='name']"
CATALOG_CARD_PRICE = "[class*='price'], .price, [data-testid='price']"
CATALOG_CARD_LINK = "a[href*='/product/']"
CATALOG_CARD_IMAGE = "img"
