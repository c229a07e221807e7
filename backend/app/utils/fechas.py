from datetime import date, datetime

from dateutil.relativedelta import relativedelta


def sumar_meses(fecha: date, meses: int) -> date:
	"""Suma meses calendario; el día se ajusta al último día si el mes es más corto.

	31/ene + 1 mes -> 28/feb (o 29 en bisiesto).
	"""

	return fecha + relativedelta(months=int(meses))


def a_fecha(valor) -> date:
	"""Normaliza date/datetime/ISO string a date. Lanza ValueError si no es parseable."""

	if isinstance(valor, datetime):
		return valor.date()
	if isinstance(valor, date):
		return valor
	return date.fromisoformat(str(valor).strip()[:10])
