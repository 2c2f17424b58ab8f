import logging
import sys

LOGGER_NAME = 'agencia_milhas'

# Formato simples, só console (compatível com logs de nuvem)
formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s')


def setup_logging(level: str = 'INFO') -> logging.Logger:
    """Configura o logger raiz do pacote. Pode ser chamado mais de uma vez."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Evita handlers duplicados quando create_app() roda várias vezes (testes)
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger
