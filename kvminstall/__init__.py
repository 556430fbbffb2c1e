'''Create and destroy local KVM virtual machines from cloud images.'''
__version__ = '1.0'
