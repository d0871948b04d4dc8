"""Storage layer and REST service for Ausbildungsnachweise."""
