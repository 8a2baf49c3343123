# patients/models/constants.py
# Opciones comunes para todos los modelos

SEXOS = [
    ('M', 'Masculino'),
    ('F', 'Femenino'),
    ('O', 'Otro'),
]

CONDICION_EDAD = [
    ('H', 'Horas'),
    ('D', 'Días'),
    ('M', 'Meses'),
    ('A', 'Años'),
]

# Hasta esta edad (en años) se dibuja la dentición temporal en el odontograma
EDAD_MAXIMA_PEDIATRICA = 12
