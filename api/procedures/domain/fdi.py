# api/procedures/domain/fdi.py
"""
Constantes y utilidades de notación FDI para el odontograma
"""
from . import errors


class FDIConstants:
    """Gestión centralizada de códigos FDI"""

    CUADRANTES = {
        1: {'arcada': 'SUPERIOR', 'lado': 'DERECHO', 'denticion': 'permanente'},
        2: {'arcada': 'SUPERIOR', 'lado': 'IZQUIERDO', 'denticion': 'permanente'},
        3: {'arcada': 'INFERIOR', 'lado': 'IZQUIERDO', 'denticion': 'permanente'},
        4: {'arcada': 'INFERIOR', 'lado': 'DERECHO', 'denticion': 'permanente'},
        5: {'arcada': 'SUPERIOR', 'lado': 'DERECHO', 'denticion': 'temporal'},
        6: {'arcada': 'SUPERIOR', 'lado': 'IZQUIERDO', 'denticion': 'temporal'},
        7: {'arcada': 'INFERIOR', 'lado': 'IZQUIERDO', 'denticion': 'temporal'},
        8: {'arcada': 'INFERIOR', 'lado': 'DERECHO', 'denticion': 'temporal'},
    }

    POSICIONES_EN_CUADRANTE = {
        'permanente': {
            1: 'Incisivo central',
            2: 'Incisivo lateral',
            3: 'Canino',
            4: 'Primer premolar',
            5: 'Segundo premolar',
            6: 'Primer molar',
            7: 'Segundo molar',
            8: 'Tercer molar',
        },
        'temporal': {
            1: 'Incisivo central',
            2: 'Incisivo lateral',
            3: 'Canino',
            4: 'Primer molar',
            5: 'Segundo molar',
        }
    }

    # Orden de dibujo del odontograma: [lado derecho, lado izquierdo]
    ADULTO_SUPERIOR = (
        ('18', '17', '16', '15', '14', '13', '12', '11'),
        ('21', '22', '23', '24', '25', '26', '27', '28'),
    )
    ADULTO_INFERIOR = (
        ('48', '47', '46', '45', '44', '43', '42', '41'),
        ('31', '32', '33', '34', '35', '36', '37', '38'),
    )
    PEDIATRICO_SUPERIOR = (
        ('55', '54', '53', '52', '51'),
        ('61', '62', '63', '64', '65'),
    )
    PEDIATRICO_INFERIOR = (
        ('85', '84', '83', '82', '81'),
        ('71', '72', '73', '74', '75'),
    )

    SUPERFICIES = {
        'O': 'Oclusal',
        'M': 'Mesial',
        'D': 'Distal',
        'V': 'Vestibular',
        'L': 'Lingual',
    }

    @classmethod
    def obtener_info_fdi(cls, codigo_fdi):
        """
        Extrae información del código FDI
        Retorna: {cuadrante, posicion, arcada, lado, denticion, nombre} o None
        """
        if not codigo_fdi or len(codigo_fdi) != 2 or not codigo_fdi.isdigit():
            return None

        cuadrante = int(codigo_fdi[0])
        posicion = int(codigo_fdi[1])

        if cuadrante not in cls.CUADRANTES:
            return None

        info_cuad = cls.CUADRANTES[cuadrante]
        denticion = info_cuad['denticion']

        if posicion not in cls.POSICIONES_EN_CUADRANTE[denticion]:
            return None

        return {
            'codigo_fdi': codigo_fdi,
            'cuadrante': cuadrante,
            'posicion': posicion,
            'arcada': info_cuad['arcada'],
            'lado': info_cuad['lado'],
            'denticion': denticion,
            'nombre': cls.POSICIONES_EN_CUADRANTE[denticion][posicion],
        }


def dientes_superiores(pediatrico=False):
    filas = FDIConstants.PEDIATRICO_SUPERIOR if pediatrico else FDIConstants.ADULTO_SUPERIOR
    return tuple(diente for fila in filas for diente in fila)


def dientes_inferiores(pediatrico=False):
    filas = FDIConstants.PEDIATRICO_INFERIOR if pediatrico else FDIConstants.ADULTO_INFERIOR
    return tuple(diente for fila in filas for diente in fila)


def dientes_arcada(pediatrico=False):
    """Todos los dientes del odontograma en orden de dibujo (superior y luego inferior)"""
    return dientes_superiores(pediatrico) + dientes_inferiores(pediatrico)


def validar_codigo_fdi(codigo_fdi):
    """Valida que código FDI sea válido (11-48, 51-85)"""
    codigo_fdi = codigo_fdi.strip() if codigo_fdi else ""

    if not codigo_fdi or len(codigo_fdi) != 2:
        raise errors.ValidationError("El código FDI debe tener exactamente 2 dígitos")

    if not codigo_fdi.isdigit():
        raise errors.ValidationError("El código FDI debe contener solo dígitos")

    if not FDIConstants.obtener_info_fdi(codigo_fdi):
        raise errors.ValidationError(f"'{codigo_fdi}' no es un código FDI válido")

    return codigo_fdi


def validar_superficie(superficie):
    """Normaliza la superficie dental (O/M/D/V/L) o None"""
    if superficie is None or not str(superficie).strip():
        return None
    superficie = str(superficie).strip().upper()
    if superficie not in FDIConstants.SUPERFICIES:
        raise errors.ValidationError(
            f"Superficie '{superficie}' inválida. Use una de: {', '.join(FDIConstants.SUPERFICIES)}"
        )
    return superficie


def normalizar_dientes(dientes):
    """
    Valida una colección de códigos FDI y devuelve una tupla sin duplicados
    en el orden de aparición.
    """
    resultado = []
    for diente in dientes or ():
        codigo = validar_codigo_fdi(str(diente))
        if codigo not in resultado:
            resultado.append(codigo)
    return tuple(resultado)


def parse_tooth_fdi(valor):
    """
    Convierte la lista delimitada por comas ('11, 12,13') en una tupla de códigos.

    No valida los códigos: los datos históricos se muestran tal como llegan.
    """
    if not valor:
        return ()
    if isinstance(valor, (list, tuple)):
        partes = valor
    else:
        partes = str(valor).split(',')
    return tuple(p.strip() for p in (str(x) for x in partes) if p.strip())


def join_tooth_fdi(dientes):
    """Operación inversa de parse_tooth_fdi"""
    return ','.join(dientes or ())
