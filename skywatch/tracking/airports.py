"""
SkyWatch Airport Directory
Static lookup table from ICAO airport code to descriptive metadata.

The table is curated, not exhaustive: a miss is an expected outcome and
callers fall back to ``AirportInfo.placeholder``.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import AirportInfo

# ICAO code -> (name, city, country)
_AIRPORT_DATA: Mapping[str, Tuple[str, str, str]] = {
    # United States
    "KJFK": ("John F. Kennedy International", "New York", "USA"),
    "KLAX": ("Los Angeles International", "Los Angeles", "USA"),
    "KORD": ("O'Hare International", "Chicago", "USA"),
    "KATL": ("Hartsfield-Jackson Atlanta International", "Atlanta", "USA"),
    "KDFW": ("Dallas/Fort Worth International", "Dallas", "USA"),
    "KDEN": ("Denver International", "Denver", "USA"),
    "KSFO": ("San Francisco International", "San Francisco", "USA"),
    "KLAS": ("Harry Reid International", "Las Vegas", "USA"),
    "KMIA": ("Miami International", "Miami", "USA"),
    "KSEA": ("Seattle-Tacoma International", "Seattle", "USA"),
    "KBOS": ("Boston Logan International", "Boston", "USA"),
    "KPHL": ("Philadelphia International", "Philadelphia", "USA"),
    "KEWR": ("Newark Liberty International", "Newark", "USA"),
    "KIAD": ("Washington Dulles International", "Washington D.C.", "USA"),
    "KDCA": ("Ronald Reagan Washington National", "Washington D.C.", "USA"),
    # Europe
    "EGLL": ("Heathrow", "London", "UK"),
    "EGKK": ("Gatwick", "London", "UK"),
    "EGLC": ("London City", "London", "UK"),
    "EGSS": ("Stansted", "London", "UK"),
    "LFPG": ("Charles de Gaulle", "Paris", "France"),
    "LFPO": ("Orly", "Paris", "France"),
    "EDDF": ("Frankfurt", "Frankfurt", "Germany"),
    "EDDM": ("Munich", "Munich", "Germany"),
    "EDDB": ("Berlin Brandenburg", "Berlin", "Germany"),
    "EHAM": ("Schiphol", "Amsterdam", "Netherlands"),
    "LEMD": ("Adolfo Suárez Madrid-Barajas", "Madrid", "Spain"),
    "LEBL": ("El Prat", "Barcelona", "Spain"),
    "LIRF": ("Fiumicino", "Rome", "Italy"),
    "LIMC": ("Malpensa", "Milan", "Italy"),
    "LSZH": ("Zurich", "Zurich", "Switzerland"),
    "LSGG": ("Geneva", "Geneva", "Switzerland"),
    "LOWW": ("Vienna International", "Vienna", "Austria"),
    "EBBR": ("Brussels", "Brussels", "Belgium"),
    "EIDW": ("Dublin", "Dublin", "Ireland"),
    "EKCH": ("Copenhagen", "Copenhagen", "Denmark"),
    "ESSA": ("Arlanda", "Stockholm", "Sweden"),
    "ENGM": ("Gardermoen", "Oslo", "Norway"),
    "EFHK": ("Helsinki-Vantaa", "Helsinki", "Finland"),
    "EPWA": ("Chopin", "Warsaw", "Poland"),
    "LKPR": ("Václav Havel", "Prague", "Czech Republic"),
    "LGAV": ("Eleftherios Venizelos", "Athens", "Greece"),
    "LTFM": ("Istanbul", "Istanbul", "Turkey"),
    "UUEE": ("Sheremetyevo", "Moscow", "Russia"),
    "LPPT": ("Humberto Delgado", "Lisbon", "Portugal"),
    # Middle East
    "OMDB": ("Dubai International", "Dubai", "UAE"),
    "OERK": ("King Khalid International", "Riyadh", "Saudi Arabia"),
    "OTHH": ("Hamad International", "Doha", "Qatar"),
    "OJAI": ("Queen Alia International", "Amman", "Jordan"),
    "LLBG": ("Ben Gurion", "Tel Aviv", "Israel"),
    # Asia
    "RJTT": ("Haneda", "Tokyo", "Japan"),
    "RJAA": ("Narita International", "Tokyo", "Japan"),
    "RKSI": ("Incheon International", "Seoul", "South Korea"),
    "VHHH": ("Hong Kong International", "Hong Kong", "China"),
    "ZBAA": ("Capital International", "Beijing", "China"),
    "ZSPD": ("Pudong International", "Shanghai", "China"),
    "WSSS": ("Changi", "Singapore", "Singapore"),
    "VTBS": ("Suvarnabhumi", "Bangkok", "Thailand"),
    "VIDP": ("Indira Gandhi International", "New Delhi", "India"),
    "VABB": ("Chhatrapati Shivaji Maharaj", "Mumbai", "India"),
    "WMKK": ("Kuala Lumpur International", "Kuala Lumpur", "Malaysia"),
    "WIII": ("Soekarno-Hatta International", "Jakarta", "Indonesia"),
    "RPLL": ("Ninoy Aquino International", "Manila", "Philippines"),
    "VVNB": ("Noi Bai International", "Hanoi", "Vietnam"),
    # Africa
    "FACT": ("Cape Town International", "Cape Town", "South Africa"),
    "FAOR": ("O.R. Tambo International", "Johannesburg", "South Africa"),
    "HECA": ("Cairo International", "Cairo", "Egypt"),
    "GMMN": ("Mohammed V International", "Casablanca", "Morocco"),
    "GMME": ("Rabat-Salé", "Rabat", "Morocco"),
    "GMFF": ("Fès-Saïss", "Fes", "Morocco"),
    "GMMX": ("Marrakech Menara", "Marrakech", "Morocco"),
    "GMTT": ("Tangier Ibn Battouta", "Tangier", "Morocco"),
    "DNMM": ("Murtala Muhammed International", "Lagos", "Nigeria"),
    "HKJK": ("Jomo Kenyatta International", "Nairobi", "Kenya"),
    # Oceania
    "YSSY": ("Sydney Kingsford Smith", "Sydney", "Australia"),
    "YMML": ("Melbourne", "Melbourne", "Australia"),
    "NZAA": ("Auckland", "Auckland", "New Zealand"),
    # Americas
    "CYYZ": ("Pearson International", "Toronto", "Canada"),
    "CYVR": ("Vancouver International", "Vancouver", "Canada"),
    "CYUL": ("Trudeau International", "Montreal", "Canada"),
    "MMMX": ("Benito Juárez International", "Mexico City", "Mexico"),
    "SBGR": ("Guarulhos International", "São Paulo", "Brazil"),
    "SCEL": ("Arturo Merino Benítez", "Santiago", "Chile"),
    "SAEZ": ("Ministro Pistarini", "Buenos Aires", "Argentina"),
    "SKBO": ("El Dorado International", "Bogotá", "Colombia"),
    "SEQM": ("Mariscal Sucre International", "Quito", "Ecuador"),
    "SPJC": ("Jorge Chávez International", "Lima", "Peru"),
}

# Built once at import and shared read-only
AIRPORTS: Mapping[str, AirportInfo] = MappingProxyType(
    {
        code: AirportInfo(code=code, name=name, city=city, country=country)
        for code, (name, city, country) in _AIRPORT_DATA.items()
    }
)


def get_airport_info(code: Optional[str]) -> Optional[AirportInfo]:
    """
    Look up an airport by ICAO code, ignoring case.

    Returns:
        AirportInfo, or None if the code is blank or not in the directory
    """
    if not code:
        return None
    return AIRPORTS.get(code.strip().upper())


def resolve_airport(code: str) -> AirportInfo:
    """Look up ``code``, falling back to a placeholder record on a miss."""
    return get_airport_info(code) or AirportInfo.placeholder(code)


def format_airport_display(airport: Optional[AirportInfo]) -> str:
    """
    Format an airport for display.

    Example:
        >>> format_airport_display(get_airport_info("kjfk"))
        'New York JFK (USA)'
    """
    if airport is None:
        return "Unknown"
    return f"{airport.city} {airport.code[-3:]} ({airport.country})"
