"""
Canonical permission catalog and default store roles.

Permission codes are ``<module>:<action>``. Seeding is idempotent; see
RBACService.seed_permissions() and RBACService.seed_store_roles().
"""

# name, display name, description, icon, sort order, subject used in labels
PERMISSION_MODULES = [
    ('auth', 'Authentication & Sessions', 'Sign in, sign out and session handling', 'Key', 1, 'Session'),
    ('users', 'User Management', 'Store users and customer accounts', 'Users', 2, 'Users'),
    ('products', 'Product Management', 'Products, pricing and featured items', 'Package', 3, 'Products'),
    ('categories', 'Category Management', 'Product categories', 'Tag', 4, 'Categories'),
    ('orders', 'Order Management', 'Orders and the approval workflow', 'ShoppingCart', 5, 'Orders'),
    ('cart', 'Shopping Cart', 'Shopping cart operations', 'ShoppingBag', 6, 'Cart'),
    ('payments', 'Payment Processing', 'Payment gateways and refunds', 'CreditCard', 7, 'Payments'),
    ('media', 'Media & File Management', 'Image uploads', 'Image', 8, 'Media'),
    ('slider', 'Homepage Slider', 'Homepage carousel images', 'Monitor', 9, 'Slider Images'),
    ('units', 'Units of Measure', 'Units used for product quantities', 'Ruler', 10, 'Units'),
    ('settings', 'Site Settings', 'Branding, theme, footer and SMTP', 'Settings', 11, 'Settings'),
    ('email', 'Email System', 'Transactional email and SMTP tests', 'Mail', 12, 'Email'),
    ('reports', 'Reports & Analytics', 'Dashboard statistics and exports', 'BarChart3', 13, 'Reports'),
    ('database', 'Database Management', 'Backups and Excel import/export', 'Database', 14, 'Database'),
    ('roles', 'Role & Permission Management', 'Roles and their permission sets', 'Shield', 15, 'Roles'),
]

MODULE_ACTIONS = {
    'auth': ['login', 'logout', 'session'],
    'users': ['view', 'create', 'edit', 'delete', 'manage', 'profile'],
    'products': ['view', 'create', 'edit', 'delete', 'manage', 'featured', 'pricing'],
    'categories': ['view', 'create', 'edit', 'delete', 'manage'],
    'orders': ['view', 'create', 'edit', 'delete', 'manage', 'approve', 'reject', 'process', 'complete', 'own'],
    'cart': ['view', 'add', 'update', 'remove', 'clear'],
    'payments': ['stripe', 'benefit', 'credimax', 'cod', 'view', 'refund'],
    'media': ['upload', 'view', 'delete', 'manage'],
    'slider': ['view', 'create', 'edit', 'delete', 'manage', 'order'],
    'units': ['view', 'create', 'edit', 'delete', 'manage'],
    'settings': ['view', 'edit', 'manage', 'smtp', 'footer'],
    'email': ['view', 'edit', 'test', 'send', 'manage', 'notifications'],
    'reports': ['view', 'export', 'analytics', 'manage', 'stats'],
    'database': ['export', 'import', 'backup', 'restore', 'excel'],
    'roles': ['view', 'create', 'edit', 'delete', 'manage', 'assign', 'permissions'],
}

# Labels that do not read well as "<Action> <Subject>"
DISPLAY_NAME_OVERRIDES = {
    'auth:login': 'Sign In',
    'auth:logout': 'Sign Out',
    'auth:session': 'Keep Session',
    'users:profile': 'Edit Own Profile',
    'products:featured': 'Manage Featured Products',
    'products:pricing': 'Manage Product Pricing',
    'orders:own': 'View Own Orders',
    'payments:stripe': 'Pay with Stripe',
    'payments:benefit': 'Pay with Benefit Pay',
    'payments:credimax': 'Pay with Credimax',
    'payments:cod': 'Pay Cash on Delivery',
    'settings:smtp': 'Manage SMTP Settings',
    'settings:footer': 'Edit Footer',
    'email:test': 'Send Test Email',
    'email:notifications': 'Manage Email Notifications',
    'database:excel': 'Excel Import/Export',
    'roles:permissions': 'Edit Role Permissions',
    'slider:order': 'Reorder Slider Images',
}


def permission_definitions():
    """Yield (module_name, code, display_name, action) for every canonical permission."""
    subjects = {module[0]: module[5] for module in PERMISSION_MODULES}
    for module_name, actions in MODULE_ACTIONS.items():
        for action in actions:
            code = f"{module_name}:{action}"
            display_name = DISPLAY_NAME_OVERRIDES.get(
                code, f"{action.title()} {subjects[module_name]}"
            )
            yield module_name, code, display_name, action


ALL_PERMISSION_CODES = frozenset(code for _, code, _, _ in permission_definitions())

SUPER_ADMIN_ROLE = 'Super Admin'
MANAGER_ROLE = 'Manager'
CUSTOMER_ROLE = 'Customer'

DEFAULT_ROLES = {
    SUPER_ADMIN_ROLE: {
        'description': 'Full store access with all permissions',
        'permissions': 'ALL',
    },
    MANAGER_ROLE: {
        'description': 'Limited access, permissions controlled by the Super Admin',
        'permissions': [
            'auth:login', 'auth:logout',
            'users:view',
            'products:view',
            'categories:view',
            'orders:view',
            'settings:view',
        ],
    },
    CUSTOMER_ROLE: {
        'description': 'Basic customer access for shopping and orders',
        'permissions': [
            'auth:login', 'auth:logout', 'auth:session',
            'users:profile',
            'products:view',
            'categories:view',
            'cart:view', 'cart:add', 'cart:update', 'cart:remove', 'cart:clear',
            'orders:own', 'orders:create',
            'payments:credimax', 'payments:benefit', 'payments:stripe', 'payments:cod', 'payments:view',
            'media:view',
            'settings:view',
        ],
    },
}
