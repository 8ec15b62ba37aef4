# app/infrastructure/external/n8n_webhook_adapter.py
import logging
import requests
from typing import Any, Dict

import config
from app.domain.ports.notification import Notification
from app.domain.services import week_clock

logger = logging.getLogger(__name__)


class N8nWebhookAdapter(Notification):
    """
    Avisa al flujo de n8n que se registró una factura. Un error aquí no
    deshace el registro: se informa en la respuesta y en el log.
    """
    def __init__(self):
        self.webhook_url = config.N8N_WEBHOOK_URL
        self.timeout = 30

    def _format_amount(self, amount: Any, currency: str) -> str:
        try:
            return "{} {:,.2f}".format(currency or "MXN", float(amount))
        except (TypeError, ValueError):
            return f"{currency or 'MXN'} 0.00"

    def build_payload(self, invoice_id: str, metadata: dict, folder_path: str) -> Dict[str, Any]:
        return {
            "submittedAt": week_clock.now().isoformat(),
            "invoiceId": invoice_id,
            "uuid": metadata.get("uuid"),
            "week": metadata.get("week"),
            "year": metadata.get("year"),
            "project": metadata.get("project"),
            "issuer": {
                "rfc": metadata.get("issuer_rfc"),
                "name": metadata.get("issuer_name"),
            },
            "amount": self._format_amount(metadata.get("total_amount"), metadata.get("currency")),
            "paymentProgram": metadata.get("payment_program", "standard"),
            "isLate": bool(metadata.get("is_late")),
            "lateReasons": metadata.get("late_reasons", []),
            "driveFolderPath": folder_path,
        }

    def notify_invoice_registered(self, invoice_id: str, metadata: dict, folder_path: str) -> dict:
        if not self.webhook_url:
            logger.info(f"[{invoice_id}] N8N_WEBHOOK_URL no configurada. No se envía notificación.")
            return {"status": "skipped", "message": "Webhook no configurado."}

        payload = self.build_payload(invoice_id, metadata, folder_path)
        try:
            response = requests.post(
                self.webhook_url,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(f"[{invoice_id}] Notificación enviada a n8n.")
            return {"status": "ok", "status_code": response.status_code}
        except requests.exceptions.RequestException as e:
            logger.error(f"[{invoice_id}] Error al notificar a n8n: {e}")
            return {"status": "error", "message": str(e)}
