"""Correlation of US county population density with COVID-19 case and death rates."""
