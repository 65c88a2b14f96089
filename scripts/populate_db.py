import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'mining_marketplace.settings')
django.setup()

from marketplace.models import (
    User, Mine, Offer, Mineral, HeavyMachine, Message
)

fake = Faker()

COMMODITIES = ['Gold', 'Coal', 'Platinum', 'Copper', 'Iron Ore', 'Chrome', 'Manganese', 'Diamonds']


def make_user(role, **extra):
    email = fake.unique.email()
    return User.objects.create_user(
        username=email,
        email=email,
        password='password123',
        first_name=fake.first_name(),
        last_name=fake.last_name(),
        contact_number=fake.numerify('+27#########'),
        role=role,
        **extra
    )


def create_users(num_owners=5, num_investors=10, num_managers=3):
    print(f"Creating {num_owners} mine owners, {num_investors} investors and {num_managers} managers...")

    owners = [
        make_user(
            User.ROLE_MINE_OWNER,
            is_verified=random.choice([True, False]),
            business_details={
                'company_name': fake.company(),
                'registration_number': fake.bothify('REG-####-??'),
                'contact_person': fake.name(),
                'products_offered': random.sample(COMMODITIES, 2),
            },
        )
        for _ in range(num_owners)
    ]

    investors = []
    for _ in range(num_investors):
        low = random.randint(10, 500) * 1000
        investors.append(make_user(
            User.ROLE_INVESTOR,
            preferences={
                'interests': random.sample(COMMODITIES, 3),
                'budget_range': {'min': low, 'max': low * random.randint(2, 10)},
            },
        ))

    managers = [make_user(User.ROLE_MINERAL_MANAGER) for _ in range(num_managers)]

    print(f"Created {len(owners) + len(investors) + len(managers)} users.")
    return owners, investors, managers


def create_mines(owners):
    print("Creating mines...")
    mines = []

    for owner in owners:
        # Each owner lists 1-3 mines
        for _ in range(random.randint(1, 3)):
            commodity = random.choice(COMMODITIES)
            mine = Mine.objects.create(
                owner=owner,
                name=f"{fake.last_name()} {commodity} Mine",
                location=f"{fake.city()}, South Africa",
                commodity_type=commodity,
                status=random.choice([choice for choice, _ in Mine.STATUS_CHOICES]),
                price=Decimal(random.uniform(1_000_000, 50_000_000)).quantize(Decimal('0.01')),
                description=fake.paragraph(),
                geology_resource={
                    'estimated_reserves_tonnes': random.randint(10_000, 5_000_000),
                    'grade': f"{random.uniform(0.5, 12):.2f} g/t",
                },
                financials={'annual_revenue': random.randint(100_000, 20_000_000)},
            )
            mines.append(mine)

    print(f"Created {len(mines)} mines.")
    return mines


def create_offers(mines, investors):
    print("Creating offers...")
    offers = []

    for mine in mines:
        # Each mine receives 0-4 offers from distinct investors
        for investor in random.sample(investors, random.randint(0, min(4, len(investors)))):
            offer = Offer.objects.create(
                mine=mine,
                investor=investor,
                amount=(mine.price * Decimal(random.uniform(0.6, 1.1))).quantize(Decimal('0.01')),
                message=fake.sentence(),
            )
            offers.append(offer)

    # Settle some listings: accepting one offer rejects the rest
    decided = 0
    for mine in mines:
        pending = list(mine.offers.filter(status=Offer.STATUS_PENDING))
        if pending and random.random() < 0.3:
            random.choice(pending).accept()
            decided += 1

    print(f"Created {len(offers)} offers, accepted on {decided} mines.")
    return offers


def create_minerals(managers):
    print("Creating minerals...")
    minerals = []

    mineral_names = {
        'precious': ['Gold Bullion', 'Platinum Concentrate', 'Silver Dore'],
        'metallic': ['Copper Cathode', 'Iron Ore Fines', 'Chrome Lumps'],
        'energy': ['Thermal Coal', 'Uranium Oxide'],
        'industrial': ['Limestone', 'Fluorspar'],
        'gemstone': ['Rough Diamonds', 'Tanzanite'],
        'non-metallic': ['Phosphate Rock', 'Vermiculite'],
    }

    for manager in managers:
        for _ in range(random.randint(2, 5)):
            mineral_type = random.choice(list(mineral_names))
            mineral = Mineral.objects.create(
                name=random.choice(mineral_names[mineral_type]),
                mineral_type=mineral_type,
                description=fake.text(max_nb_chars=300),
                price_per_unit=Decimal(random.uniform(20.0, 2000.0)).quantize(Decimal('0.01')),
                currency=random.choice(['USD', 'ZAR']),
                available_quantity=Decimal(random.randint(10, 10_000)),
                latitude=float(fake.latitude()),
                longitude=float(fake.longitude()),
                logistics={'incoterms': random.choice(['FOB', 'CIF', 'EXW'])},
                created_by=manager,
            )
            minerals.append(mineral)

    print(f"Created {len(minerals)} minerals.")
    return minerals


def create_machines(managers, renters):
    print("Creating heavy machines...")
    machines = []

    categories = [choice for choice, _ in HeavyMachine.CATEGORY_CHOICES]
    brands = ['Caterpillar', 'Komatsu', 'Volvo', 'Liebherr', 'Hitachi', 'Bell']

    for manager in managers:
        for _ in range(random.randint(2, 4)):
            category = random.choice(categories)
            brand = random.choice(brands)
            machine = HeavyMachine.objects.create(
                name=f"{brand} {category.replace('-', ' ').title()}",
                category=category,
                brand=brand,
                model_name=fake.bothify('??-###').upper(),
                year=random.randint(2005, timezone.now().year),
                purchase_price=Decimal(random.randint(50_000, 900_000)),
                rental_price_per_day=Decimal(random.randint(500, 8_000)),
                owner=manager,
                created_by=manager,
                serial_number=fake.bothify('SN-########'),
                country='South Africa',
                description=fake.paragraph(),
                specs={'engine_power': f"{random.randint(80, 600)} kW"},
            )
            machines.append(machine)

    # Put some machines to work
    rented = 0
    for machine in random.sample(machines, len(machines) // 3):
        start = timezone.now() - timedelta(days=random.randint(1, 20))
        rental = machine.rent(random.choice(renters), start_date=start, notes=fake.sentence())
        if random.random() < 0.4:
            machine.return_rental(rental.id)
        rented += 1

    print(f"Created {len(machines)} machines, {rented} rented at least once.")
    return machines


def create_messages(mines, investors):
    print("Creating messages...")
    messages = []

    for mine in random.sample(mines, min(len(mines), 5)):
        investor = random.choice(investors)
        messages.append(Message.objects.create(
            sender=investor,
            receiver=mine.owner,
            mine=mine,
            content=f"Is the {mine.commodity_type.lower()} resource estimate independently audited?",
        ))
        messages.append(Message.objects.create(
            sender=mine.owner,
            receiver=investor,
            mine=mine,
            content=fake.sentence(),
            seen=random.choice([True, False]),
        ))

    print(f"Created {len(messages)} messages.")
    return messages


def main():
    print("Starting database population...")

    owners, investors, managers = create_users()

    mines = create_mines(owners)
    create_offers(mines, investors)

    create_minerals(managers)
    create_machines(managers, investors + owners)

    create_messages(mines, investors)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
