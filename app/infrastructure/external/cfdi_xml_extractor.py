# app/infrastructure/external/cfdi_xml_extractor.py
import logging
import re
from typing import Optional

from lxml import etree

from app.domain.models.invoice import ExtractedFields, InvoiceItem
from app.domain.ports.invoice_extractor import InvoiceExtractor
from app.domain.services.lateness import extract_week_claim, parse_invoice_date

logger = logging.getLogger(__name__)

CFDI_40_NS = "http://www.sat.gob.mx/cfd/4"
TFD_NS = "http://www.sat.gob.mx/TimbreFiscalDigital"

_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>\s*", re.I)

# Claves del SAT para el atributo Impuesto
IMPUESTO_ISR = "001"
IMPUESTO_IVA = "002"


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


class CfdiXmlExtractor(InvoiceExtractor):
    """
    Lee directamente los atributos del CFDI (3.3 o 4.0) sin usar IA.
    Sirve para completar o corregir lo que devuelve el extractor con IA:
    el XML timbrado es la fuente de verdad para UUID, fecha y montos.
    """

    def extract(self, xml_text: Optional[str], pdf_bytes: Optional[bytes] = None, pdf_filename: Optional[str] = None) -> ExtractedFields:
        if not xml_text:
            return ExtractedFields()

        try:
            content = _XML_DECL_RE.sub("", xml_text, count=1)
            parser = etree.XMLParser(resolve_entities=False, no_network=True)
            root = etree.fromstring(content.encode("utf-8"), parser)
        except etree.XMLSyntaxError as e:
            logger.warning(f"ADVERTENCIA: No se pudo parsear el XML del CFDI. Error: {e}")
            return ExtractedFields()

        ns = {
            'cfdi': etree.QName(root).namespace or CFDI_40_NS,
            'tfd': TFD_NS,
        }

        def find(xpath):
            return root.find(xpath, ns)

        def attr(element, name, default=None):
            if element is None:
                return default
            value = element.get(name)
            return value.strip() if value is not None else default

        emisor = find('./cfdi:Emisor')
        receptor = find('./cfdi:Receptor')
        impuestos = find('./cfdi:Impuestos')
        timbre = find('.//tfd:TimbreFiscalDigital')

        items = []
        for concepto in root.findall('./cfdi:Conceptos/cfdi:Concepto', ns):
            items.append(InvoiceItem(
                description=attr(concepto, 'Descripcion', ''),
                quantity=_to_float(attr(concepto, 'Cantidad')) or 0.0,
                unit_price=_to_float(attr(concepto, 'ValorUnitario')) or 0.0,
                amount=_to_float(attr(concepto, 'Importe')) or 0.0,
                unit=attr(concepto, 'Unidad') or attr(concepto, 'ClaveUnidad'),
                product_key=attr(concepto, 'ClaveProdServ'),
                tax_object=attr(concepto, 'ObjetoImp'),
            ))

        retention_iva, retention_isr = None, None
        for retencion in root.findall('./cfdi:Impuestos/cfdi:Retenciones/cfdi:Retencion', ns):
            if attr(retencion, 'Impuesto') == IMPUESTO_IVA:
                retention_iva = _to_float(attr(retencion, 'Importe'))
            elif attr(retencion, 'Impuesto') == IMPUESTO_ISR:
                retention_isr = _to_float(attr(retencion, 'Importe'))

        # Las tasas solo vienen a nivel concepto
        retention_iva_rate, retention_isr_rate = None, None
        for retencion in root.findall('./cfdi:Conceptos/cfdi:Concepto/cfdi:Impuestos/cfdi:Retenciones/cfdi:Retencion', ns):
            if attr(retencion, 'Impuesto') == IMPUESTO_IVA and retention_iva_rate is None:
                retention_iva_rate = _to_float(attr(retencion, 'TasaOCuota'))
            elif attr(retencion, 'Impuesto') == IMPUESTO_ISR and retention_isr_rate is None:
                retention_isr_rate = _to_float(attr(retencion, 'TasaOCuota'))

        uuid = attr(timbre, 'UUID')

        fields = ExtractedFields(
            rfc=(attr(emisor, 'Rfc') or '').upper() or None,
            biller_name=attr(emisor, 'Nombre'),
            issuer_regime=attr(emisor, 'RegimenFiscal'),
            issuer_zip_code=attr(root, 'LugarExpedicion'),
            receiver_rfc=(attr(receptor, 'Rfc') or '').upper() or None,
            receiver_name=attr(receptor, 'Nombre'),
            receiver_regime=attr(receptor, 'RegimenFiscalReceptor'),
            receiver_zip_code=attr(receptor, 'DomicilioFiscalReceptor'),
            cfdi_use=attr(receptor, 'UsoCFDI'),
            week_claim=extract_week_claim([item.description for item in items]),
            invoice_date=parse_invoice_date(attr(root, 'Fecha')),
            folio=attr(root, 'Folio'),
            series=attr(root, 'Serie'),
            uuid=uuid.upper() if uuid else None,
            certification_date=attr(timbre, 'FechaTimbrado'),
            sat_cert_number=attr(timbre, 'NoCertificadoSAT'),
            payment_method=attr(root, 'MetodoPago'),
            payment_form=attr(root, 'FormaPago'),
            payment_conditions=attr(root, 'CondicionesDePago'),
            subtotal=_to_float(attr(root, 'SubTotal')),
            total_tax=_to_float(attr(impuestos, 'TotalImpuestosTrasladados')),
            retention_iva=retention_iva,
            retention_iva_rate=retention_iva_rate,
            retention_isr=retention_isr,
            retention_isr_rate=retention_isr_rate,
            total_amount=_to_float(attr(root, 'Total')),
            currency=attr(root, 'Moneda'),
            exchange_rate=_to_float(attr(root, 'TipoCambio')),
            items=items or None,
        )
        logger.info(f"[{fields.uuid or 'sin UUID'}] CFDI leído localmente ({len(items)} conceptos).")
        return fields
