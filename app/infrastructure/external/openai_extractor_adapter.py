# app/infrastructure/external/openai_extractor_adapter.py
import base64
import json
import logging
import requests
from typing import Any, Dict, List, Optional

import config
from app.domain.models.invoice import ExtractedFields, InvoiceItem
from app.domain.ports.invoice_extractor import ExtractionError, InvoiceExtractor
from app.domain.services.lateness import parse_invoice_date

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Eres un experto en facturas CFDI mexicanas v4.0. Tu tarea es extraer TODOS los datos de la factura proporcionada.

INSTRUCCIONES DE EXTRACCIÓN:
1. IDENTIFICADORES: Extrae 'Folio', 'Serie', 'UUID', 'FechaTimbrado', 'NoCertificadoSAT'.
2. EMISOR: Extrae RFC, Nombre, RegimenFiscal (código Y descripción), DomicilioFiscalEmisor.
3. RECEPTOR: Extrae RFC, Nombre, RegimenFiscalReceptor, DomicilioFiscalReceptor, UsoCFDI.
4. PAGO: Extrae MetodoPago (PUE/PPD), FormaPago código, CondicionesDePago.
5. IMPUESTOS: total de impuestos TRASLADADOS en 'totalTax'; retenciones IVA (Impuesto 002) en 'retentionIva' y su tasa en 'retentionIvaRate'; retenciones ISR (Impuesto 001) en 'retentionIsr' y su tasa en 'retentionIsrRate'.
6. CONCEPTOS: Extrae TODOS los Conceptos con descripción completa, cantidad, unidad, precioUnitario, importe, ClaveProdServ, ObjetoImp.
7. PROYECTO: Busca en la Descripción del Concepto o Nombre del Emisor el nombre del cliente o proyecto.
8. SEMANA: Si la descripción menciona una semana (ej. "Semana 04"), devuelve el número en 'week'.

Responde SOLO con un objeto JSON válido, sin markdown ni explicaciones."""

RESPONSE_SHAPE = """Devuelve un JSON con estas llaves (usa null si no encuentras el dato):
rfc, billerName, issuerRegime, issuerZipCode, receiverRfc, receiverName, receiverRegime,
receiverZipCode, cfdiUse, project, week, invoiceDate (YYYY-MM-DD), folio, series, uuid,
certificationDate, satCertNumber, paymentMethod, paymentForm, paymentConditions, subtotal,
totalTax, retentionIva, retentionIvaRate, retentionIsr, retentionIsrRate, totalAmount,
currency, exchangeRate, email, items (lista con description, quantity, unit, unitPrice,
amount, productKey, taxObject)."""

# Llave del JSON de respuesta -> campo de ExtractedFields
TEXT_FIELDS = {
    "rfc": "rfc",
    "billerName": "biller_name",
    "issuerRegime": "issuer_regime",
    "issuerZipCode": "issuer_zip_code",
    "receiverRfc": "receiver_rfc",
    "receiverName": "receiver_name",
    "receiverRegime": "receiver_regime",
    "receiverZipCode": "receiver_zip_code",
    "cfdiUse": "cfdi_use",
    "project": "project",
    "folio": "folio",
    "series": "series",
    "uuid": "uuid",
    "certificationDate": "certification_date",
    "satCertNumber": "sat_cert_number",
    "paymentMethod": "payment_method",
    "paymentForm": "payment_form",
    "paymentConditions": "payment_conditions",
    "currency": "currency",
    "email": "email",
}
NUMBER_FIELDS = {
    "subtotal": "subtotal",
    "totalTax": "total_tax",
    "retentionIva": "retention_iva",
    "retentionIvaRate": "retention_iva_rate",
    "retentionIsr": "retention_isr",
    "retentionIsrRate": "retention_isr_rate",
    "totalAmount": "total_amount",
    "exchangeRate": "exchange_rate",
}


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).replace(",", "").replace("$", "").strip())
    except ValueError:
        return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def map_response(data: Dict[str, Any]) -> ExtractedFields:
    """Convierte el JSON del modelo en campos tipados, descartando lo que no sirva."""
    values: Dict[str, Any] = {}
    for key, field in TEXT_FIELDS.items():
        values[field] = _text(data.get(key))
    for key, field in NUMBER_FIELDS.items():
        values[field] = _number(data.get(key))

    for field in ("rfc", "receiver_rfc", "uuid"):
        if values[field]:
            values[field] = values[field].upper()

    week = _number(data.get("week"))
    values["week_claim"] = int(week) if week is not None and 1 <= week <= 53 else None
    values["invoice_date"] = parse_invoice_date(_text(data.get("invoiceDate")))

    items: List[InvoiceItem] = []
    for raw in data.get("items") or []:
        if not isinstance(raw, dict):
            continue
        items.append(InvoiceItem(
            description=_text(raw.get("description")) or "",
            quantity=_number(raw.get("quantity")) or 0.0,
            unit_price=_number(raw.get("unitPrice")) or 0.0,
            amount=_number(raw.get("amount")) or 0.0,
            unit=_text(raw.get("unit")),
            product_key=_text(raw.get("productKey")),
            tax_object=_text(raw.get("taxObject")),
        ))
    values["items"] = items or None

    return ExtractedFields(**values)


class OpenAIExtractorAdapter(InvoiceExtractor):
    """
    Adaptador para la API de chat de OpenAI: envía el XML como texto y el PDF
    como archivo, y pide un JSON con los campos del CFDI.
    """
    def __init__(self):
        self.api_key = config.OPENAI_API_KEY
        self.model = config.OPENAI_MODEL
        self.api_url = config.OPENAI_API_URL
        self.timeout = 90

    def _build_messages(self, xml_text: Optional[str], pdf_bytes: Optional[bytes], pdf_filename: Optional[str]) -> List[Dict[str, Any]]:
        user_content: List[Dict[str, Any]] = []
        if xml_text:
            user_content.append({"type": "text", "text": f"CONTENIDO XML DE LA FACTURA CFDI:\n\n{xml_text}"})
        if pdf_bytes:
            pdf_b64 = base64.b64encode(pdf_bytes).decode("utf-8")
            user_content.append({
                "type": "file",
                "file": {
                    "filename": pdf_filename or "factura.pdf",
                    "file_data": f"data:application/pdf;base64,{pdf_b64}",
                },
            })
        user_content.append({"type": "text", "text": RESPONSE_SHAPE})
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    def extract(self, xml_text: Optional[str], pdf_bytes: Optional[bytes] = None, pdf_filename: Optional[str] = None) -> ExtractedFields:
        if not self.api_key:
            raise ExtractionError("OPENAI_API_KEY no está configurada.")
        if not xml_text and not pdf_bytes:
            raise ExtractionError("No se proporcionaron archivos para extracción.")

        payload = {
            "model": self.model,
            "messages": self._build_messages(xml_text, pdf_bytes, pdf_filename),
            "response_format": {"type": "json_object"},
            "temperature": 0,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.info("Iniciando extracción de datos con OpenAI...")
        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            data = json.loads(content)
        except requests.exceptions.RequestException as e:
            logger.error(f"ERROR al llamar a OpenAI: {e}")
            if e.response is not None:
                logger.error(f"Detalle del error: {e.response.text}")
            raise ExtractionError("El servicio de extracción no está disponible.") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Respuesta inválida de OpenAI: {e}")
            raise ExtractionError("El servicio de extracción devolvió una respuesta inválida.") from e

        if not isinstance(data, dict):
            raise ExtractionError("El servicio de extracción devolvió una respuesta inválida.")

        fields = map_response(data)
        logger.info(f"[{fields.uuid or 'sin UUID'}] Extracción con OpenAI completada.")
        return fields
