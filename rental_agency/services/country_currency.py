from __future__ import annotations

import logging

from rental_agency.schemas.invoices import CurrencyInfo


LOGGER = logging.getLogger("rental_agency.currency")

DEFAULT_CURRENCY = CurrencyInfo(code="USD", symbol="$", name="US Dollar")

_EUR = CurrencyInfo(code="EUR", symbol="€", name="Euro")
_GBP = CurrencyInfo(code="GBP", symbol="£", name="British Pound")

# ISO 3166-1 alpha-2 -> ISO 4217
COUNTRY_CURRENCY_MAP: dict[str, CurrencyInfo] = {
    "US": DEFAULT_CURRENCY,
    "CA": CurrencyInfo(code="CAD", symbol="C$", name="Canadian Dollar"),
    "MX": CurrencyInfo(code="MXN", symbol="$", name="Mexican Peso"),
    "GB": _GBP,
    "UK": _GBP,
    "DE": _EUR,
    "FR": _EUR,
    "IT": _EUR,
    "ES": _EUR,
    "NL": _EUR,
    "BE": _EUR,
    "AT": _EUR,
    "IE": _EUR,
    "PT": _EUR,
    "GR": _EUR,
    "FI": _EUR,
    "CH": CurrencyInfo(code="CHF", symbol="Fr", name="Swiss Franc"),
    "SE": CurrencyInfo(code="SEK", symbol="kr", name="Swedish Krona"),
    "NO": CurrencyInfo(code="NOK", symbol="kr", name="Norwegian Krone"),
    "DK": CurrencyInfo(code="DKK", symbol="kr", name="Danish Krone"),
    "PL": CurrencyInfo(code="PLN", symbol="zł", name="Polish Zloty"),
    "CZ": CurrencyInfo(code="CZK", symbol="Kč", name="Czech Koruna"),
    "HU": CurrencyInfo(code="HUF", symbol="Ft", name="Hungarian Forint"),
    "RO": CurrencyInfo(code="RON", symbol="lei", name="Romanian Leu"),
    "RU": CurrencyInfo(code="RUB", symbol="₽", name="Russian Ruble"),
    "UA": CurrencyInfo(code="UAH", symbol="₴", name="Ukrainian Hryvnia"),
    "TR": CurrencyInfo(code="TRY", symbol="₺", name="Turkish Lira"),
    "IN": CurrencyInfo(code="INR", symbol="₹", name="Indian Rupee"),
    "CN": CurrencyInfo(code="CNY", symbol="¥", name="Chinese Yuan"),
    "JP": CurrencyInfo(code="JPY", symbol="¥", name="Japanese Yen"),
    "KR": CurrencyInfo(code="KRW", symbol="₩", name="South Korean Won"),
    "SG": CurrencyInfo(code="SGD", symbol="S$", name="Singapore Dollar"),
    "HK": CurrencyInfo(code="HKD", symbol="HK$", name="Hong Kong Dollar"),
    "TW": CurrencyInfo(code="TWD", symbol="NT$", name="New Taiwan Dollar"),
    "TH": CurrencyInfo(code="THB", symbol="฿", name="Thai Baht"),
    "MY": CurrencyInfo(code="MYR", symbol="RM", name="Malaysian Ringgit"),
    "ID": CurrencyInfo(code="IDR", symbol="Rp", name="Indonesian Rupiah"),
    "PH": CurrencyInfo(code="PHP", symbol="₱", name="Philippine Peso"),
    "VN": CurrencyInfo(code="VND", symbol="₫", name="Vietnamese Dong"),
    "PK": CurrencyInfo(code="PKR", symbol="₨", name="Pakistani Rupee"),
    "BD": CurrencyInfo(code="BDT", symbol="৳", name="Bangladeshi Taka"),
    "LK": CurrencyInfo(code="LKR", symbol="Rs", name="Sri Lankan Rupee"),
    "NP": CurrencyInfo(code="NPR", symbol="₨", name="Nepalese Rupee"),
    "AE": CurrencyInfo(code="AED", symbol="د.إ", name="UAE Dirham"),
    "SA": CurrencyInfo(code="SAR", symbol="﷼", name="Saudi Riyal"),
    "QA": CurrencyInfo(code="QAR", symbol="﷼", name="Qatari Riyal"),
    "KW": CurrencyInfo(code="KWD", symbol="د.ك", name="Kuwaiti Dinar"),
    "BH": CurrencyInfo(code="BHD", symbol="BD", name="Bahraini Dinar"),
    "OM": CurrencyInfo(code="OMR", symbol="﷼", name="Omani Rial"),
    "IL": CurrencyInfo(code="ILS", symbol="₪", name="Israeli Shekel"),
    "JO": CurrencyInfo(code="JOD", symbol="JD", name="Jordanian Dinar"),
    "EG": CurrencyInfo(code="EGP", symbol="£", name="Egyptian Pound"),
    "AU": CurrencyInfo(code="AUD", symbol="A$", name="Australian Dollar"),
    "NZ": CurrencyInfo(code="NZD", symbol="NZ$", name="New Zealand Dollar"),
    "BR": CurrencyInfo(code="BRL", symbol="R$", name="Brazilian Real"),
    "AR": CurrencyInfo(code="ARS", symbol="$", name="Argentine Peso"),
    "CL": CurrencyInfo(code="CLP", symbol="$", name="Chilean Peso"),
    "CO": CurrencyInfo(code="COP", symbol="$", name="Colombian Peso"),
    "PE": CurrencyInfo(code="PEN", symbol="S/", name="Peruvian Sol"),
    "VE": CurrencyInfo(code="VES", symbol="Bs", name="Venezuelan Bolivar"),
    "ZA": CurrencyInfo(code="ZAR", symbol="R", name="South African Rand"),
    "NG": CurrencyInfo(code="NGN", symbol="₦", name="Nigerian Naira"),
    "KE": CurrencyInfo(code="KES", symbol="KSh", name="Kenyan Shilling"),
    "GH": CurrencyInfo(code="GHS", symbol="₵", name="Ghanaian Cedi"),
    "MA": CurrencyInfo(code="MAD", symbol="د.م.", name="Moroccan Dirham"),
    "TN": CurrencyInfo(code="TND", symbol="د.ت", name="Tunisian Dinar"),
}

COUNTRY_NAME_TO_CODE: dict[str, str] = {
    "united states": "US",
    "usa": "US",
    "united states of america": "US",
    "canada": "CA",
    "mexico": "MX",
    "united kingdom": "GB",
    "uk": "GB",
    "england": "GB",
    "germany": "DE",
    "france": "FR",
    "italy": "IT",
    "spain": "ES",
    "netherlands": "NL",
    "belgium": "BE",
    "austria": "AT",
    "ireland": "IE",
    "portugal": "PT",
    "greece": "GR",
    "finland": "FI",
    "switzerland": "CH",
    "sweden": "SE",
    "norway": "NO",
    "denmark": "DK",
    "poland": "PL",
    "czech republic": "CZ",
    "hungary": "HU",
    "romania": "RO",
    "russia": "RU",
    "ukraine": "UA",
    "turkey": "TR",
    "india": "IN",
    "china": "CN",
    "japan": "JP",
    "south korea": "KR",
    "korea": "KR",
    "singapore": "SG",
    "hong kong": "HK",
    "taiwan": "TW",
    "thailand": "TH",
    "malaysia": "MY",
    "indonesia": "ID",
    "philippines": "PH",
    "vietnam": "VN",
    "pakistan": "PK",
    "bangladesh": "BD",
    "sri lanka": "LK",
    "nepal": "NP",
    "uae": "AE",
    "united arab emirates": "AE",
    "saudi arabia": "SA",
    "qatar": "QA",
    "kuwait": "KW",
    "bahrain": "BH",
    "oman": "OM",
    "israel": "IL",
    "jordan": "JO",
    "egypt": "EG",
    "australia": "AU",
    "new zealand": "NZ",
    "brazil": "BR",
    "argentina": "AR",
    "chile": "CL",
    "colombia": "CO",
    "peru": "PE",
    "venezuela": "VE",
    "south africa": "ZA",
    "nigeria": "NG",
    "kenya": "KE",
    "ghana": "GH",
    "morocco": "MA",
    "tunisia": "TN",
}


def currency_for(country_input: str | None) -> CurrencyInfo:
    if not country_input:
        return DEFAULT_CURRENCY

    code = country_input.strip().upper()
    if code in COUNTRY_CURRENCY_MAP:
        return COUNTRY_CURRENCY_MAP[code]

    mapped = COUNTRY_NAME_TO_CODE.get(country_input.strip().lower())
    if mapped and mapped in COUNTRY_CURRENCY_MAP:
        return COUNTRY_CURRENCY_MAP[mapped]

    LOGGER.debug("No currency mapping for country %r, defaulting to %s", country_input, DEFAULT_CURRENCY.code)
    return DEFAULT_CURRENCY


def all_countries_with_currencies() -> list[dict]:
    # Longest alias wins as the display name ("united states of america" over "usa").
    code_to_name: dict[str, str] = {}
    for name, code in COUNTRY_NAME_TO_CODE.items():
        if code not in code_to_name or len(name) > len(code_to_name[code]):
            code_to_name[code] = name

    countries = []
    for code, currency in COUNTRY_CURRENCY_MAP.items():
        name = code_to_name.get(code, code)
        countries.append(
            {
                "code": code,
                "name": name[:1].upper() + name[1:],
                "currency": currency.model_dump(),
            }
        )
    countries.sort(key=lambda item: item["name"].lower())
    return countries
