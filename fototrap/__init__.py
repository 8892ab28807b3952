"""FotoTrap field station: camera-trap registration workflow."""

__version__ = '0.1.0'
