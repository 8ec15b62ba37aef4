# app/domain/ports/notification.py
from abc import ABC, abstractmethod


class Notification(ABC):
    """Puerto para avisar a sistemas externos que se registró una factura."""
    @abstractmethod
    def notify_invoice_registered(self, invoice_id: str, metadata: dict, folder_path: str) -> dict:
        """
        Envía el resumen de la factura registrada.
        Retorna la respuesta del servicio o un dict con el error.
        """
        pass
