from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from marketplace.customers.models import Customer
from marketplace.products.models import Product, ProductStatus
from marketplace.sellers.models import Seller


class Command(BaseCommand):
    help = "Seed database with sellers, a catalog and customers for local checkout testing."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        sellers = self._seed_sellers()
        products = self._seed_products(sellers)
        customers = self._seed_customers()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"sellers={len(sellers)}, "
                f"products={len(products)}, "
                f"customers={len(customers)}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        for username in ("seller1", "seller2", "seller3", "customer1", "customer2"):
            if not User.objects.filter(username=username).exists():
                User.objects.create_user(username, password=f"{username}pass")
                created += 1
        return created

    def _seed_sellers(self) -> list[Seller]:
        self.stdout.write("Creating sellers...")
        User = get_user_model()
        sellers: list[Seller] = []
        seed_sellers = [
            ("seller1", "Gadget Galaxy", "gadgets@example.com", "9800000001"),
            ("seller2", "Home & Hearth", "home@example.com", "9800000002"),
            ("seller3", "Paper Trail Stationers", "paper@example.com", "9800000003"),
        ]
        for username, store_name, email, phone in seed_sellers:
            seller, _ = Seller.objects.get_or_create(
                email=email,
                defaults={
                    "user": User.objects.filter(username=username).first(),
                    "store_name": store_name,
                    "contact_number": phone,
                    "is_active": True,
                },
            )
            sellers.append(seller)
        self.stdout.write(self.style.SUCCESS("Creating sellers... Done!"))
        return sellers

    def _seed_products(self, sellers: list[Seller]) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            (0, "ELEC-001", "27\" Monitor", "Electronics", Decimal("12999.00"), 3),
            (0, "ELEC-002", "Mechanical Keyboard", "Electronics", Decimal("3999.00"), 4),
            (0, "ELEC-003", "Wireless Mouse", "Electronics", Decimal("799.00"), 4),
            (0, "ELEC-004", "USB-C Hub", "Electronics", Decimal("1499.00"), 5),
            (1, "HOME-001", "Cotton Bedsheet", "Home", Decimal("1299.00"), 6),
            (1, "HOME-002", "Ceramic Dinner Set", "Home", Decimal("2499.00"), 7),
            (1, "HOME-003", "Table Lamp", "Home", Decimal("899.00"), 5),
            (2, "STAT-001", "A4 Paper Ream", "Stationery", Decimal("299.00"), 2),
            (2, "STAT-002", "Gel Pen Pack", "Stationery", Decimal("149.00"), 2),
            (2, "STAT-003", "Hardbound Notebook", "Stationery", Decimal("249.00"), 3),
        ]
        for seller_index, sku, name, category, price, delivery_days in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "seller": sellers[seller_index],
                    "name": name,
                    "category": category,
                    "price": price,
                    "stock": random.randint(5, 100),
                    "delivery_days": delivery_days,
                    "status": ProductStatus.ACTIVE,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        User = get_user_model()
        customers: list[Customer] = []
        seed_customers = [
            ("customer1", "Asha Verma", "asha@example.com", "9876543210"),
            ("customer2", "Rohan Mehta", "rohan@example.com", "9876501234"),
        ]
        for username, name, email, phone in seed_customers:
            customer, _ = Customer.objects.get_or_create(
                email=email,
                defaults={
                    "user": User.objects.filter(username=username).first(),
                    "name": name,
                    "phone": phone,
                    "is_active": True,
                },
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers
