# app/infrastructure/persistence/models.py
from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from .database import Base


class Proyecto(Base):
    __tablename__ = "proyectos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    codigo = Column(String(50), unique=True, nullable=False)
    nombre = Column(String(200), nullable=False)
    activo = Column(Boolean, default=True, nullable=False)


class Emisor(Base):
    """Flotillero o contratista independiente que emite la factura."""
    __tablename__ = "emisores"

    rfc = Column(String(13), primary_key=True)
    razon_social = Column(String(300))
    regimen_fiscal = Column(String(10))
    codigo_postal = Column(String(5))
    email = Column(String(200))
    telefono = Column(String(30))


class Factura(Base):
    __tablename__ = "facturas"

    id = Column(String(20), primary_key=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False)
    emisor_rfc = Column(String(13), ForeignKey("emisores.rfc"), nullable=False)
    proyecto_id = Column(Integer, ForeignKey("proyectos.id"), nullable=True)

    folio = Column(String(40))
    serie = Column(String(25))
    fecha_factura = Column(Date)
    fecha_timbrado = Column(String(30))
    no_certificado_sat = Column(String(30))

    receptor_rfc = Column(String(13))
    receptor_nombre = Column(String(300))
    receptor_regimen = Column(String(10))
    uso_cfdi = Column(String(10))

    metodo_pago = Column(String(3))
    forma_pago = Column(String(10))
    condiciones_pago = Column(String(200))

    subtotal = Column(Float, default=0)
    total_impuestos = Column(Float, default=0)
    retencion_iva = Column(Float, default=0)
    retencion_iva_tasa = Column(Float, default=0)
    retencion_isr = Column(Float, default=0)
    retencion_isr_tasa = Column(Float, default=0)
    monto_total = Column(Float, nullable=False)
    moneda = Column(String(3), default="MXN")
    tipo_cambio = Column(Float, default=1)

    semana_pago = Column(Integer)
    anio_pago = Column(Integer)
    es_extemporanea = Column(Boolean, default=False, nullable=False)
    motivos_extemporanea = Column(String(200))

    programa_pago = Column(String(20), default="standard", nullable=False)
    tasa_pronto_pago = Column(Float, default=0)
    costo_pronto_pago = Column(Float, default=0)
    monto_neto = Column(Float)
    nota_credito_uuid = Column(String(36))

    email_contacto = Column(String(200))
    telefono_contacto = Column(String(30))
    estado = Column(String(30), default="pending_review", nullable=False)
    fecha_registro = Column(DateTime, server_default=func.now())

    emisor = relationship("Emisor")
    proyecto = relationship("Proyecto")
    conceptos = relationship("ConceptoFactura", back_populates="factura", cascade="all, delete-orphan")
    archivos = relationship("ArchivoFactura", back_populates="factura", cascade="all, delete-orphan")


class ConceptoFactura(Base):
    __tablename__ = "conceptos_factura"

    id = Column(Integer, primary_key=True, autoincrement=True)
    factura_id = Column(String(20), ForeignKey("facturas.id"), nullable=False)
    descripcion = Column(String(1000))
    cantidad = Column(Float, default=0)
    valor_unitario = Column(Float, default=0)
    importe = Column(Float, default=0)
    unidad = Column(String(50))
    clave_prod_serv = Column(String(10))
    objeto_imp = Column(String(5))

    factura = relationship("Factura", back_populates="conceptos")


class ArchivoFactura(Base):
    __tablename__ = "archivos_factura"

    id = Column(Integer, primary_key=True, autoincrement=True)
    factura_id = Column(String(20), ForeignKey("facturas.id"), nullable=False)
    tipo = Column(String(20), nullable=False)
    nombre_archivo = Column(String(300))
    url = Column(String(500))
    drive_file_id = Column(String(100))

    factura = relationship("Factura", back_populates="archivos")
