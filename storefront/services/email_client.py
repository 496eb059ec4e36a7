# storefront/services/email_client.py
import requests

from storefront.domain.errors import NotificationFailure
from storefront.utils.retry import http_retry
from storefront.utils.settings import EMAIL_API_KEY, EMAIL_API_URL, EMAIL_FROM, STORE_NAME
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def render_order_confirmation(snapshot: dict) -> str:
    lines = [
        f"Thanks for your order, {snapshot.get('customer_name') or 'there'}!",
        f"Order {snapshot['order_number']}",
        "",
    ]
    for item in snapshot.get("items", []):
        title = item["product_title"]
        if item.get("variant_title"):
            title = f"{title} ({item['variant_title']})"
        lines.append(f"{item['quantity']} x {title} @ ${item['price']}")
    lines += [
        "",
        f"Subtotal: ${snapshot['subtotal']}",
        f"Discount: -${snapshot['discount']}",
        f"Shipping: ${snapshot['shipping_cost']}",
        f"Tax: ${snapshot['tax']}",
        f"Total: ${snapshot['total']}",
    ]
    return "\n".join(lines)


class EmailClient:
    """Transactional e-mail over HTTP. Without an API key messages are only logged."""

    def __init__(self, api_url: str | None = None, api_key: str | None = None, timeout: int = 5):
        self.api_url = (api_url or EMAIL_API_URL).rstrip("/")
        self.api_key = EMAIL_API_KEY if api_key is None else api_key
        self.timeout = timeout

    @http_retry()
    def _post(self, payload: dict) -> requests.Response:
        resp = requests.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp

    def send_order_confirmation(self, snapshot: dict) -> bool:
        subject = f"{STORE_NAME}: order {snapshot['order_number']} confirmed"
        body = render_order_confirmation(snapshot)

        if not self.api_key:
            logger.info(f"[EMAIL mock] to={snapshot['email']} subject={subject!r}")
            return True

        try:
            self._post({"from": EMAIL_FROM, "to": [snapshot["email"]], "subject": subject, "text": body})
        except requests.RequestException as e:
            raise NotificationFailure(f"Order confirmation for {snapshot['order_number']} not sent: {e}") from e

        logger.info(f"Order confirmation for {snapshot['order_number']} sent")
        return True
