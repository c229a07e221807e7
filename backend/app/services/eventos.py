"""Bus de cambios en proceso (reservas, pagos y notificaciones).

Los servicios publican un evento después de cada escritura relevante; quien
necesite reaccionar (p.ej. refrescar un listado) se suscribe a un tema y, si
quiere, a un solo usuario destinatario.
"""

import threading

from blinker import Namespace
from flask import current_app


TEMAS = ("reservas", "pagos", "notificaciones")

_senales = Namespace()
_activas: set = set()
_lock = threading.Lock()


def _senal(tema: str):
    if tema not in TEMAS:
        raise ValueError(f"Tema de eventos desconocido: {tema!r}")
    return _senales.signal(tema)


class Suscripcion:
    def __init__(self, tema: str, callback, id_usuario: int | None = None):
        self.tema = tema
        self.callback = callback
        self.id_usuario = id_usuario
        self._senal = _senal(tema)
        self._activa = True

        self._senal.connect(self._recibir, weak=False)
        with _lock:
            _activas.add(self)

    @property
    def activa(self) -> bool:
        return self._activa

    def _recibir(self, sender, evento=None, **kwargs):
        evento = evento or {}
        destinatarios = evento.get("destinatarios")
        if self.id_usuario is not None and destinatarios is not None and self.id_usuario not in destinatarios:
            return
        try:
            self.callback(evento)
        except Exception:
            # Un suscriptor roto no debe tumbar la escritura que publicó el evento.
            current_app.logger.exception("[eventos] callback falló tema=%s usuario=%s", self.tema, self.id_usuario)

    def cancelar(self) -> None:
        """Idempotente: cancelar dos veces no hace nada."""

        with _lock:
            if not self._activa:
                return
            self._activa = False
            _activas.discard(self)
        self._senal.disconnect(self._recibir)

    def __repr__(self) -> str:
        return f"<Suscripcion tema={self.tema} usuario={self.id_usuario} activa={self._activa}>"


def suscribir(tema: str, callback, id_usuario: int | None = None) -> Suscripcion:
    return Suscripcion(tema, callback, id_usuario=id_usuario)


def publicar(tema: str, tipo: str, datos: dict | None = None, destinatarios=None) -> int:
    """Publica un evento. Devuelve cuántos receptores estaban conectados."""

    evento = {
        "tema": tema,
        "tipo": tipo,
        "datos": datos or {},
        "destinatarios": sorted({int(x) for x in destinatarios if x is not None}) if destinatarios is not None else None,
    }
    resultados = _senal(tema).send(None, evento=evento)
    return len(resultados)


def cancelar_todas() -> None:
    with _lock:
        pendientes = list(_activas)
    for s in pendientes:
        s.cancelar()
