import unittest
from datetime import date, datetime
from types import SimpleNamespace

from rental_agency.schemas.invoices import CurrencyInfo
from rental_agency.services.invoice_pdf import render_invoice_pdf
from rental_agency.services.invoice_service import (
    NoRentalsForPeriodError,
    build_invoice,
    build_single_rental_invoice,
    generate_invoice_number,
    pdf_currency_symbol,
    resolve_daily_rate,
    summarize_totals,
)


NOW = datetime(2024, 2, 15, 10, 30)


def _rental(rental_id, from_date, to_date, rate_per_month=300, daily_rate=None, customer=None):
    spec = SimpleNamespace(
        Description="Excavator",
        Model="X100",
        Manufacturer=SimpleNamespace(Description="Caterpillar"),
    )
    return SimpleNamespace(
        RentalID=rental_id,
        FromDate=from_date,
        ToDate=to_date,
        RatePerMonth=rate_per_month,
        DailyRate=daily_rate,
        Asset=SimpleNamespace(AssetSpec=spec),
        Customer=customer,
    )


class TotalsTests(unittest.TestCase):
    def test_tax_is_applied_on_subtotal(self):
        self.assertEqual(summarize_totals([100, 50], 10), (150, 15, 165))

    def test_zero_tax(self):
        self.assertEqual(summarize_totals([19.999], 0), (20, 0, 20))

    def test_daily_rate_falls_back_to_monthly_rate(self):
        self.assertEqual(resolve_daily_rate(_rental(1, date(2024, 1, 1), None, rate_per_month=300)), 10)
        self.assertEqual(resolve_daily_rate(_rental(1, date(2024, 1, 1), None, daily_rate=12.5)), 12.5)


class InvoiceNumberTests(unittest.TestCase):
    def test_period_suffixes(self):
        self.assertEqual(generate_invoice_number("INV", 7, 1, 2024, NOW), "INV-7-2024-01")
        self.assertEqual(generate_invoice_number("ACME", 7, None, 2024, NOW), "ACME-7-2024")
        self.assertEqual(generate_invoice_number(None, 7, 3, None, NOW), "INV-7-03")

    def test_unfiltered_uses_timestamp_token(self):
        number = generate_invoice_number("INV", 7, now=NOW)
        prefix, customer, token = number.split("-")
        self.assertEqual((prefix, customer), ("INV", "7"))
        self.assertEqual(int(token, 36), int(NOW.timestamp() * 1000))

    def test_pdf_symbol_fallback(self):
        self.assertEqual(pdf_currency_symbol("₹"), "Rs ")
        self.assertEqual(pdf_currency_symbol("€"), "€")
        self.assertEqual(pdf_currency_symbol(None), "$")


class BuildInvoiceTests(unittest.TestCase):
    def setUp(self):
        self.customer = SimpleNamespace(
            CustomerID=7,
            FirstName="Ada",
            LastName="Lovelace",
            EmailID="ada@example.com",
            MobilePhone="555-0101",
        )
        self.agency = SimpleNamespace(
            Name="Acme Rentals",
            Address="1 Main St",
            City="Springfield",
            StateProvince="IL",
            ZipPostalCode="62701",
            CountryRegion="India",
            ContactEmail="contact@acme.test",
            ContactPhone="555-0100",
        )
        self.settings = SimpleNamespace(DefaultTaxRate=10, InvoicePrefix="ACME")
        self.currency = CurrencyInfo(code="INR", symbol="₹", name="Indian Rupee")
        self.rentals = [
            _rental(1, date(2024, 1, 15), date(2024, 3, 10), customer=self.customer),
            _rental(2, date(2023, 5, 1), date(2023, 5, 31), customer=self.customer),
        ]

    def test_month_invoice_prorates_days(self):
        invoice = build_invoice(
            self.customer,
            self.rentals,
            agency=self.agency,
            settings=self.settings,
            currency=self.currency,
            period_month=1,
            period_year=2024,
            now=NOW,
        )
        self.assertEqual(invoice.invoiceNumber, "ACME-7-2024-01")
        self.assertEqual(invoice.invoicePeriod, "January 2024")
        self.assertEqual(len(invoice.rentals), 1)
        item = invoice.rentals[0]
        self.assertEqual(item.totalDays, 17)
        self.assertEqual(item.totalAmount, 170)
        self.assertEqual(item.fromDate, date(2024, 1, 15))
        self.assertEqual(item.toDate, date(2024, 1, 31))
        self.assertEqual(item.status, "returned")
        self.assertEqual((invoice.subtotal, invoice.tax, invoice.total), (170, 17, 187))
        self.assertEqual(invoice.dueDate, date(2024, 3, 16))
        self.assertEqual(invoice.currencySymbol, "₹")
        self.assertEqual(invoice.customer.name, "Ada Lovelace")
        self.assertIn("Springfield", invoice.agency.address)

    def test_empty_period_raises(self):
        with self.assertRaises(NoRentalsForPeriodError):
            build_invoice(self.customer, self.rentals, period_month=8, period_year=2022, now=NOW)

    def test_single_rental_invoice(self):
        invoice = build_single_rental_invoice(self.rentals[1], settings=self.settings, now=NOW)
        self.assertTrue(invoice.invoiceNumber.startswith("ACME-R2-"))
        self.assertEqual(invoice.rentals[0].totalDays, 31)
        self.assertEqual(invoice.agency.name, "Asset Rental Co.")
        self.assertEqual(invoice.currencySymbol, "$")

    def test_pdf_rendering(self):
        invoice = build_invoice(
            self.customer,
            self.rentals,
            agency=self.agency,
            settings=self.settings,
            currency=self.currency,
            now=NOW,
        )
        content = render_invoice_pdf(invoice)
        self.assertTrue(content.startswith(b"%PDF"))
        self.assertGreater(len(content), 1000)


if __name__ == "__main__":
    unittest.main()
