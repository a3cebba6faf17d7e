"""Starter accounts and the bilingual category tree for a new ledger."""

DEFAULT_ACCOUNTS = [
    {"name": "Ricky", "bank": "CBC", "color": "#00A3E0", "is_default": True, "sort_order": 1},
    {"name": "Commun", "bank": "CBC", "color": "#E67E22", "is_default": False, "sort_order": 2},
]

# (name_fr, name_en, icon, color, [(sub name_fr, sub name_en), ...])
# Sort order follows list position, starting at 1.
DEFAULT_CATEGORIES = [
    ("Logement", "Housing", "Building", "#003D5B", [
        ("Loyer/Charges", "Rent/Charges"),
        ("Énergie", "Energy"),
        ("Assurance habitation", "Home Insurance"),
        ("Meubles", "Furniture"),
        ("Électroménager", "Appliances"),
        ("Décoration", "Decoration"),
        ("Outils & matériaux", "Tools & Materials"),
    ]),
    ("Alimentation", "Food", "ShoppingCart", "#00A3E0", [
        ("Courses", "Groceries"),
        ("Restaurant", "Restaurant"),
        ("Boulangerie/Snacks", "Bakery/Snacks"),
    ]),
    ("Transport", "Transport", "Car", "#E67E22", [
        ("Carburant/Électricité voiture", "Fuel/Car Electricity"),
        ("Assurance auto", "Car Insurance"),
        ("Entretien & Parking", "Maintenance & Parking"),
        ("Location véhicule", "Vehicle Rental"),
        ("Transport en commun", "Public Transport"),
    ]),
    ("Abonnements & Services", "Subscriptions & Services", "Tv", "#00B894", [
        ("Streaming", "Streaming"),
        ("Stockage en ligne", "Cloud Storage"),
        ("Internet & Mobile", "Internet & Mobile"),
        ("Sécurité", "Security"),
        ("Logiciels", "Software"),
        ("Autres abonnements", "Other Subscriptions"),
    ]),
    ("Shopping & Commerces", "Shopping & Retail", "ShoppingBag", "#9B59B6", [
        ("Magasins", "Stores"),
        ("Électronique & High-tech", "Electronics & Tech"),
        ("Divers achats", "Misc Purchases"),
    ]),
    ("Famille & Enfants", "Family & Kids", "Users", "#FD79A8", [
        ("Bébé", "Baby"),
        ("Jouets", "Toys"),
        ("Activités enfants", "Kids Activities"),
        ("Garde/Crèche", "Childcare/Daycare"),
    ]),
    ("Finance & Épargne", "Finance & Savings", "PiggyBank", "#1ABC9C", [
        ("Épargne pension", "Pension Savings"),
        ("Épargne Leana", "Leana Savings"),
        ("Assurance vie", "Life Insurance"),
        ("Frais bancaires", "Bank Fees"),
    ]),
    ("Cadeaux & Occasions", "Gifts & Events", "Gift", "#E91E63", [
        ("Cadeaux d'anniversaire", "Birthday Gifts"),
        ("Cadeaux de Noël", "Christmas Gifts"),
        ("Fêtes", "Celebrations"),
        ("Dons", "Donations"),
    ]),
    ("Santé & Bien-être", "Health & Wellness", "Heart", "#E74C3C", [
        ("Mutuelle/Assurance santé", "Health Insurance"),
        ("Soins médicaux", "Medical Care"),
        ("Pharmacie", "Pharmacy"),
        ("Coiffeur", "Hairdresser"),
    ]),
    ("Sport", "Sports", "Dumbbell", "#F39C12", [
        ("Padel", "Padel"),
        ("Abonnement salle", "Gym Membership"),
        ("Équipement sportif", "Sports Equipment"),
        ("Activités sportives", "Sports Activities"),
    ]),
    ("Loisirs & Culture", "Leisure & Culture", "Gamepad2", "#3498DB", [
        ("Jeux vidéo", "Video Games"),
        ("Jeux de société", "Board Games"),
        ("Livres", "Books"),
        ("Bibliothèque", "Library"),
        ("Cinéma & Spectacles", "Cinema & Shows"),
        ("Réalité virtuelle", "Virtual Reality"),
        ("Formations", "Training/Courses"),
    ]),
    ("Personnel", "Personal", "User", "#8E44AD", [
        ("Vêtements", "Clothing"),
        ("Accessoires", "Accessories"),
        ("Beauté/Cosmétiques", "Beauty/Cosmetics"),
    ]),
    ("Vacances & Voyages", "Travel & Holidays", "Plane", "#2ECC71", [
        ("Hébergement", "Accommodation"),
        ("Transport", "Transport"),
        ("Activités", "Activities"),
        ("Dépenses sur place", "On-site Expenses"),
    ]),
    ("Jardin & Extérieur", "Garden & Outdoor", "Flower2", "#27AE60", [
        ("Plantes & jardinage", "Plants & Gardening"),
    ]),
    ("Services Postaux", "Postal Services", "Mail", "#95A5A6", [
        ("Courrier & Colis", "Mail & Parcels"),
    ]),
    ("Administratif & Légal", "Admin & Legal", "FileText", "#34495E", [
        ("Documents officiels", "Official Documents"),
        ("Assurances diverses", "Various Insurances"),
        ("Frais administratifs", "Admin Fees"),
    ]),
    ("Divers", "Other", "MoreHorizontal", "#BDC3C7", [
        ("Non catégorisé", "Uncategorized"),
    ]),
]
