from insomnia_fuel.models.order import Order
from insomnia_fuel.models.order_item import OrderItem
from insomnia_fuel.models.cart import Cart
from insomnia_fuel.models.user import User
from insomnia_fuel.models.menu_item import MenuItem
from insomnia_fuel.models.contact_message import ContactMessage
from insomnia_fuel.models.gallery_image import GalleryImage
