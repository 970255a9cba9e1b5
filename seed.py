from datetime import date, time, timedelta

from app import app, db
from auth import hash_password
from models import Admin, Airline, Airplane, Airport, City, Country, Flight

# (name, state, lat, lon, population)
CITIES = [
    ("Delhi", "Delhi", 28.61, 77.21, 16787941),
    ("Mumbai", "Maharashtra", 19.08, 72.88, 12442373),
    ("Bengaluru", "Karnataka", 12.97, 77.59, 8443675),
    ("Pune", "Maharashtra", 18.52, 73.86, 3124458),
]

# (name, iata, icao, city)
AIRPORTS = [
    ("Indira Gandhi International Airport", "DEL", "VIDP", "Delhi"),
    ("Chhatrapati Shivaji Maharaj International Airport", "BOM", "VABB", "Mumbai"),
    ("Kempegowda International Airport", "BLR", "VOBL", "Bengaluru"),
    ("Pune Airport", "PNQ", "VAPO", "Pune"),
]

# (name, iata, icao, callsign, fleet size, aircraft model, registration, capacity)
AIRLINES = [
    ("IndiGo", "6E", "IGO", "IFLY", 350, "Airbus A320neo", "VT-IZA", 186),
    ("Air India", "AI", "AIC", "AIRINDIA", 140, "Boeing 787-8", "VT-ANB", 256),
]

# (flight number, airline iata, from, to, departure, arrival, price in INR)
ROUTES = [
    ("6E2134", "6E", "DEL", "BOM", time(6, 0), time(8, 30), 5400),
    ("AI805", "AI", "DEL", "BOM", time(16, 45), time(19, 15), 6200),
    ("6E5311", "6E", "BOM", "DEL", time(9, 15), time(11, 40), 5100),
    ("6E6413", "6E", "BLR", "PNQ", time(22, 50), time(0, 35), 3900),
    ("AI509", "AI", "PNQ", "BLR", time(13, 5), time(14, 40), 4200),
]

WEEKEND_SURCHARGE = 800


def seed_reference_data():
    db.session.add(Country(name="India", iso2="IN", iso3="IND", phone_code="+91",
                           capital="New Delhi", currency="INR", region="Asia"))

    cities = {}
    for name, state, lat, lon, population in CITIES:
        cities[name] = City(name=name, state=state, country_iso2="IN", latitude=lat,
                            longitude=lon, timezone="Asia/Kolkata", population=population)
    db.session.add_all(cities.values())
    db.session.flush()

    airports = {}
    for name, iata, icao, city in AIRPORTS:
        airports[iata] = Airport(name=name, iata_code=iata, icao_code=icao, city_id=cities[city].id,
                                 city=city, country_iso2="IN", timezone="Asia/Kolkata")
    db.session.add_all(airports.values())

    airlines, aircraft = {}, {}
    for name, iata, icao, callsign, fleet, model, registration, capacity in AIRLINES:
        airlines[iata] = Airline(name=name, iata_code=iata, icao_code=icao, callsign=callsign,
                                 country_iso2="IN", status="active", fleet_size=fleet)
        aircraft[iata] = Airplane(name=registration, model=model, registration_number=registration,
                                  airline_iata=iata, capacity=capacity)
    db.session.add_all(airlines.values())
    db.session.flush()
    db.session.add_all(aircraft.values())
    db.session.flush()
    return airports, airlines, aircraft


def seed_data(days=30):
    print("Recreating tables...")
    db.drop_all()
    db.create_all()

    print("Creating reference data...")
    airports, airlines, aircraft = seed_reference_data()

    print("Creating new flight data...")
    today = date.today()
    flights = []
    for offset in range(1, days + 1):
        flight_date = today + timedelta(days=offset)
        for number, airline, origin, destination, departs, arrives, price in ROUTES:
            flights.append(Flight(
                flight_date=flight_date,
                flight_status="Scheduled",
                departure_airport=f"{airports[origin].name} ({origin})",
                departure_iata=origin,
                departure_time=departs,
                arrival_airport=f"{airports[destination].name} ({destination})",
                arrival_iata=destination,
                arrival_time=arrives,
                airline_name=airlines[airline].name,
                airline_iata=airline,
                flight_number=number,
                aircraft_id=aircraft[airline].id,
                price=price + (WEEKEND_SURCHARGE if flight_date.weekday() >= 5 else 0),
            ))
    db.session.add_all(flights)

    print("Creating admin account...")
    db.session.add(Admin(
        username="admin",
        email=app.config['ADMIN_EMAIL'],
        password_hash=hash_password(app.config['ADMIN_PASSWORD']),
        admin_name="Flynest Admin",
    ))

    db.session.commit()
    print(f"Database has been seeded with {len(flights)} flights!")


if __name__ == '__main__':
    # Sessions need an app context outside of requests
    with app.app_context():
        seed_data()
