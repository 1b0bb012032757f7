"""core/ -- Kernel layer: configuration and the domain error taxonomy.

Layer rule: core/ imports only stdlib + third-party libraries. Every other
package may import from core/; core/ imports from none of them.
"""
