import unittest

from rental_agency.services.country_currency import DEFAULT_CURRENCY, all_countries_with_currencies, currency_for


class CurrencyForTests(unittest.TestCase):
    def test_iso_code(self):
        currency = currency_for("IN")
        self.assertEqual((currency.code, currency.symbol, currency.name), ("INR", "₹", "Indian Rupee"))

    def test_code_is_case_insensitive(self):
        self.assertEqual(currency_for("gb").code, "GBP")

    def test_country_names(self):
        self.assertEqual(currency_for("india").code, "INR")
        self.assertEqual(currency_for("UK").code, "GBP")
        self.assertEqual(currency_for("Germany").code, "EUR")

    def test_unknown_and_empty_default_to_usd(self):
        for value in ("Atlantis", None, "", "   "):
            self.assertEqual(currency_for(value), DEFAULT_CURRENCY)


class CountryListTests(unittest.TestCase):
    def test_sorted_by_name_with_currency(self):
        countries = all_countries_with_currencies()
        names = [country["name"] for country in countries]
        self.assertEqual(names, sorted(names, key=str.lower))
        india = next(country for country in countries if country["code"] == "IN")
        self.assertEqual(india["currency"]["code"], "INR")


if __name__ == "__main__":
    unittest.main()
