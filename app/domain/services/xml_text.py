# app/domain/services/xml_text.py
FILE_ERROR_MESSAGE = "No se pudo procesar el archivo. Verifica que sea un XML válido."


def decode_xml_bytes(content: bytes) -> str:
    """
    Convierte el archivo a texto: UTF-8 (con o sin BOM) y, si falla,
    Windows-1252, que es la otra codificación común en CFDI.
    Lanza UnicodeDecodeError si ninguna funciona.
    """
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("cp1252")
