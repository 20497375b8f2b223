"""CityShare item-lending API."""
