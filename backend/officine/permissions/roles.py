# Overview: Default role -> permission table.

from .definitions import PERMISSION_DEFINITIONS


ROLE_DOCTEUR = "docteur"
ROLE_VENDEUSE = "vendeuse"

ROLES = (ROLE_DOCTEUR, ROLE_VENDEUSE)

# Granted through is_owner only, never through a role
OWNER_ONLY_PERMISSIONS = frozenset({
    "gerer_utilisateurs",
    "gerer_societe",
})


DEFAULT_ROLE_PERMISSIONS = {
    # Pharmacist: everything a non-owner can hold
    ROLE_DOCTEUR: [
        perm[0] for perm in PERMISSION_DEFINITIONS if perm[0] not in OWNER_ONLY_PERMISSIONS
    ],

    ROLE_VENDEUSE: [
        "voir_dashboard",
        "voir_ventes",
        "ajouter_vente",
        "modifier_vente",
        "voir_stock",
        "ajouter_stock",
        "modifier_stock",
        "voir_devis_factures",
        "ajouter_devis_factures",
        "voir_paiements",
        "ajouter_paiement",
        "voir_invitations",
        "imprimer_documents",
    ],
}
