# Overview: All permission tags organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- DASHBOARD --

DASHBOARD_PERMISSIONS = [
    (
        "voir_dashboard",
        "Voir le tableau de bord",
        "Totals, unpaid documents and stock alerts",
        PermissionCategory.DASHBOARD,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    ("voir_ventes", "Voir les ventes", "List and open sales", PermissionCategory.SALES),
    ("ajouter_vente", "Ajouter une vente", "Create sales (decrements stock)", PermissionCategory.SALES),
    ("modifier_vente", "Modifier une vente", "Edit existing sales", PermissionCategory.SALES),
    ("supprimer_vente", "Supprimer une vente", "Delete sales (restores stock)", PermissionCategory.SALES),
]


# -- PURCHASES --

PURCHASE_PERMISSIONS = [
    ("voir_achats", "Voir les achats", "List and open purchases", PermissionCategory.PURCHASES),
    ("ajouter_achat", "Ajouter un achat", "Create purchases (restocks)", PermissionCategory.PURCHASES),
    ("modifier_achat", "Modifier un achat", "Edit existing purchases", PermissionCategory.PURCHASES),
    ("supprimer_achat", "Supprimer un achat", "Delete purchases (reverses stock)", PermissionCategory.PURCHASES),
]


# -- STOCK --

STOCK_PERMISSIONS = [
    ("voir_stock", "Voir le stock", "List stock items and lots", PermissionCategory.STOCK),
    ("ajouter_stock", "Ajouter du stock", "Create stock items and lots", PermissionCategory.STOCK),
    ("modifier_stock", "Modifier le stock", "Edit stock items and lots", PermissionCategory.STOCK),
    ("supprimer_stock", "Supprimer du stock", "Delete stock items and lots", PermissionCategory.STOCK),
]


# -- DOCUMENTS --

DOCUMENT_PERMISSIONS = [
    (
        "voir_devis_factures",
        "Voir devis et factures",
        "List and open quotes and invoices",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "ajouter_devis_factures",
        "Ajouter devis et factures",
        "Create quotes, invoices and grouped invoices",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "modifier_devis_factures",
        "Modifier devis et factures",
        "Edit or cancel quotes and invoices",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "supprimer_devis_factures",
        "Supprimer devis et factures",
        "Delete quotes and invoices",
        PermissionCategory.DOCUMENTS,
    ),
    (
        "imprimer_documents",
        "Imprimer les documents",
        "Print sales, purchases, quotes and invoices",
        PermissionCategory.DOCUMENTS,
    ),
]


# -- PAYMENTS --

PAYMENT_PERMISSIONS = [
    ("voir_paiements", "Voir les paiements", "List payments", PermissionCategory.PAYMENTS),
    ("ajouter_paiement", "Ajouter un paiement", "Record payments", PermissionCategory.PAYMENTS),
    ("modifier_paiement", "Modifier un paiement", "Edit recorded payments", PermissionCategory.PAYMENTS),
    ("supprimer_paiement", "Supprimer un paiement", "Delete recorded payments", PermissionCategory.PAYMENTS),
]


# -- ADMINISTRATION --

ADMINISTRATION_PERMISSIONS = [
    (
        "parametres",
        "Paramètres",
        "Print and stock management settings",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "gerer_utilisateurs",
        "Gérer les utilisateurs",
        "Change roles, lock and delete users (owner only)",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "voir_invitations",
        "Voir les invitations",
        "See invitations and the join code",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "gerer_invitations",
        "Gérer les invitations",
        "Issue, renew, cancel and delete invitations",
        PermissionCategory.ADMINISTRATION,
    ),
    (
        "gerer_societe",
        "Gérer la société",
        "Edit company identity and regenerate the join code (owner only)",
        PermissionCategory.ADMINISTRATION,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    ("voir_rapports", "Voir les rapports", "Activity journal and reports", PermissionCategory.REPORTS),
    ("exporter_donnees", "Exporter les données", "Export documents", PermissionCategory.REPORTS),
]


PERMISSION_DEFINITIONS = (
    DASHBOARD_PERMISSIONS
    + SALES_PERMISSIONS
    + PURCHASE_PERMISSIONS
    + STOCK_PERMISSIONS
    + DOCUMENT_PERMISSIONS
    + PAYMENT_PERMISSIONS
    + ADMINISTRATION_PERMISSIONS
    + REPORT_PERMISSIONS
)
