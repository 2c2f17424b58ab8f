"""Sistema de gestão para agências de revenda de milhas aéreas."""

__version__ = '1.0.0'
